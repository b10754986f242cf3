"""
Error Types

Exception hierarchy shared by the scanner, differ, synchronizer and
configuration layers. The command line converts any MirrorError into a
diagnostic and a non-zero exit code.

Author: treemirror Project
License: MIT
"""

from dataclasses import dataclass
from typing import Optional


class MirrorError(Exception):
    """Base class for all fatal treemirror errors."""


class InvalidPathError(MirrorError):
    """A root path is missing or not a directory, or a file lies outside its root."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class TransferError(MirrorError):
    """A copy, move or removal failed while applying a changeset."""

    def __init__(self, message: str, operation: str, path: str):
        super().__init__(message)
        self.operation = operation
        self.path = path


class VerificationError(TransferError):
    """Destination content differs from the source after a copy."""


class SerializationError(MirrorError):
    """A persisted snapshot is unreadable or malformed."""


class ConfigError(MirrorError):
    """The configuration file is unreadable or fails validation."""


@dataclass(frozen=True)
class ScanFailure:
    """A single file that could not be stat'ed or hashed during a scan."""
    path: str
    reason: str
