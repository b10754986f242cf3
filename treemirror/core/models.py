"""
Data Models

File records, snapshots of a directory tree, the changeset computed between
two snapshots, and the report produced when a changeset is applied.

Snapshots can be saved to and loaded from a JSON document so that a previous
scan can serve as a cached comparison point.

Author: treemirror Project
License: MIT
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Tuple, Union

from pydantic import BaseModel, ValidationError, field_validator

from .errors import ScanFailure, SerializationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

_FINGERPRINT_RE = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True)
class FileRecord:
    """Metadata and content fingerprint of one regular file."""
    path: str  # relative to the snapshot root, '/'-separated
    size: int
    mtime: int  # whole-second Unix timestamp
    fingerprint: str
    permissions: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data = {
            'path': self.path,
            'size': self.size,
            'mtime': self.mtime,
            'fingerprint': self.fingerprint,
        }
        if self.permissions is not None:
            data['permissions'] = self.permissions
        return data


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable listing of a directory tree at one point in time.

    ``files`` carries no meaningful order; paths are unique. ``failures``
    lists the files that could not be read during the scan and is not
    persisted.
    """
    root: str
    files: Tuple[FileRecord, ...]
    scan_time: int
    failures: Tuple[ScanFailure, ...] = field(default=(), compare=False)

    @property
    def skipped(self) -> int:
        """Number of files excluded because they could not be stat'ed or hashed."""
        return len(self.failures)

    @property
    def total_size(self) -> int:
        """Sum of all file sizes in bytes."""
        return sum(record.size for record in self.files)

    def by_path(self) -> Dict[str, FileRecord]:
        """Index the snapshot's records by relative path."""
        return {record.path: record for record in self.files}

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'root': self.root,
            'files': [record.to_dict() for record in self.files],
            'scan_time': self.scan_time,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Snapshot':
        """
        Create a snapshot from its serialized form.

        Raises:
            SerializationError: If the document is malformed
        """
        if not isinstance(data, dict):
            raise SerializationError("Snapshot document must be a JSON object")

        try:
            document = SnapshotDocument(**data)
        except ValidationError as e:
            raise SerializationError(f"Malformed snapshot document: {e}") from e

        return cls(
            root=document.root,
            files=tuple(
                FileRecord(
                    path=entry.path,
                    size=entry.size,
                    mtime=entry.mtime,
                    fingerprint=entry.fingerprint,
                    permissions=entry.permissions,
                )
                for entry in document.files
            ),
            scan_time=document.scan_time,
        )

    def save(self, path: Union[str, Path]) -> None:
        """
        Write the snapshot to a JSON file.

        Raises:
            SerializationError: If the file cannot be written
        """
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as e:
            raise SerializationError(f"Could not write snapshot {target}: {e}") from e

        logger.info(f"Saved snapshot of {self.root} ({len(self.files)} files) to {target}")

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'Snapshot':
        """
        Read a snapshot previously written by save().

        Raises:
            SerializationError: If the file is unreadable or malformed
        """
        source = Path(path)
        try:
            with open(source, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError) as e:
            raise SerializationError(f"Could not read snapshot {source}: {e}") from e
        except json.JSONDecodeError as e:
            raise SerializationError(f"Snapshot {source} is not valid JSON: {e}") from e

        snapshot = cls.from_dict(data)
        logger.info(f"Loaded snapshot of {snapshot.root} ({len(snapshot.files)} files) from {source}")
        return snapshot


class FileEntryDocument(BaseModel):
    """Validation model for one persisted file entry."""
    path: str
    size: int
    mtime: int
    fingerprint: str
    permissions: Optional[int] = None

    @field_validator("path")
    @classmethod
    def validate_path(cls, v):
        """Paths must be relative and must not escape the root."""
        if not v or v.startswith("/") or ".." in v.split("/"):
            raise ValueError(f"Invalid relative path: {v!r}")
        return v

    @field_validator("size", "mtime")
    @classmethod
    def validate_non_negative(cls, v):
        """Sizes and timestamps are unsigned."""
        if v < 0:
            raise ValueError(f"Must not be negative: {v}")
        return v

    @field_validator("fingerprint")
    @classmethod
    def validate_fingerprint(cls, v):
        """Fingerprints are lowercase hex sha256 digests."""
        if not _FINGERPRINT_RE.match(v):
            raise ValueError(f"Invalid fingerprint: {v!r}")
        return v


class SnapshotDocument(BaseModel):
    """Validation model for a persisted snapshot."""
    root: str
    files: List[FileEntryDocument]
    scan_time: int

    @field_validator("files")
    @classmethod
    def validate_unique_paths(cls, v):
        """Ensure no duplicate file paths."""
        paths = [entry.path for entry in v]
        if len(paths) != len(set(paths)):
            raise ValueError("Duplicate file paths detected in snapshot")
        return v


class RenamePair(NamedTuple):
    """A destination file whose content reappears at a new source path."""
    old: FileRecord  # destination-side record
    new: FileRecord  # source-side record


@dataclass
class Changeset:
    """Classified differences between a source and a destination snapshot."""
    added: List[FileRecord] = field(default_factory=list)
    removed: List[FileRecord] = field(default_factory=list)
    modified: List[FileRecord] = field(default_factory=list)
    renamed: List[RenamePair] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified or self.renamed)

    @property
    def copy_count(self) -> int:
        """Files that will be transferred directly (added + modified)."""
        return len(self.added) + len(self.modified)

    def pending_operations(self, delete_removed: bool) -> int:
        """Number of operations apply() would perform."""
        total = self.copy_count + len(self.renamed)
        if delete_removed:
            total += len(self.removed)
        return total

    def summary(self, delete_removed: bool) -> str:
        """One-line description, e.g. ``3 copy, 1 rename, 2 delete``."""
        text = f"{self.copy_count} copy, {len(self.renamed)} rename"
        if delete_removed:
            text += f", {len(self.removed)} delete"
        return text


@dataclass
class SyncReport:
    """Counters describing one applied changeset."""
    copied: int = 0
    renamed: int = 0
    deleted: int = 0
    verified: int = 0
    bytes_copied: int = 0

    def to_dict(self) -> dict:
        return {
            'copied': self.copied,
            'renamed': self.renamed,
            'deleted': self.deleted,
            'verified': self.verified,
            'bytes_copied': self.bytes_copied,
        }
