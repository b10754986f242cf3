"""
Directory Scanner

Walks a directory tree and builds a Snapshot: per-file size, modification
time, permission bits and content fingerprint. Stat and hashing run as
independent tasks on a bounded thread pool; each task writes its result into
a single lock-guarded collector.

A file that cannot be read is logged and left out of the snapshot; the scan
itself still succeeds and reports how many files were skipped.

Author: treemirror Project
License: MIT
"""

import math
import os
import stat
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from threading import Lock
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .errors import InvalidPathError, ScanFailure
from .models import FileRecord, Snapshot
from ..utils.file_ops import hash_file
from ..utils.ignore import DEFAULT_IGNORE_FILES, IgnoreRules
from ..utils.logger import get_logger
from ..utils.progress import ProgressSink

logger = get_logger(__name__)

_POSIX_PERMISSIONS = os.name == "posix"


def default_workers() -> int:
    """Logical CPU count, at least 1."""
    return os.cpu_count() or 1


class _RecordCollector:
    """Append-only sink shared by the hashing tasks."""

    def __init__(self):
        self._lock = Lock()
        self._records: List[FileRecord] = []
        self._failures: List[ScanFailure] = []

    def add_record(self, record: FileRecord):
        with self._lock:
            self._records.append(record)

    def add_failure(self, failure: ScanFailure):
        with self._lock:
            self._failures.append(failure)

    def results(self) -> Tuple[Tuple[FileRecord, ...], Tuple[ScanFailure, ...]]:
        with self._lock:
            return tuple(self._records), tuple(self._failures)


class Scanner:
    """
    Builds snapshots of directory trees.

    Settings are held per instance so independent scans in one process can
    use different worker counts or ignore rules.
    """

    def __init__(
        self,
        workers: Optional[int] = None,
        respect_ignore_files: bool = True,
        ignore_file_names: Sequence[str] = DEFAULT_IGNORE_FILES,
        progress: Optional[ProgressSink] = None
    ):
        """
        Initialize scanner.

        Args:
            workers: Size of the hashing thread pool (None = CPU count)
            respect_ignore_files: Exclude paths matched by ignore files
            ignore_file_names: Ignore file names honoured in every directory
            progress: Progress sink (defaults to a silent one)
        """
        if workers is not None and workers < 1:
            raise ValueError(f"workers must be at least 1: {workers}")

        self.workers = workers or default_workers()
        self.respect_ignore_files = respect_ignore_files
        self.ignore_file_names = tuple(ignore_file_names)
        self.progress = progress or ProgressSink()

    def scan(self, root: Union[str, Path]) -> Snapshot:
        """
        Scan a directory tree.

        Args:
            root: Directory to scan

        Returns:
            Snapshot of every readable regular file below root

        Raises:
            InvalidPathError: If root does not exist or is not a directory
        """
        root_path = Path(root).expanduser()
        if not root_path.exists():
            raise InvalidPathError(f"Directory does not exist: {root_path}", str(root_path))
        if not root_path.is_dir():
            raise InvalidPathError(f"Not a directory: {root_path}", str(root_path))
        root_path = root_path.resolve()

        logger.info(f"Scanning: {root_path}")
        file_paths = self._collect_files(root_path)
        logger.info(f"Found {len(file_paths)} files, computing hashes with {self.workers} workers...")

        collector = _RecordCollector()
        self.progress.begin(f"Scanning {root_path}", total=len(file_paths))
        try:
            with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="treemirror-scan") as pool:
                futures = [
                    pool.submit(self._process_file, root_path, file_path, collector)
                    for file_path in file_paths
                ]
                for future in as_completed(futures):
                    future.result()
                    self.progress.advance(1)
        finally:
            self.progress.end()

        records, failures = collector.results()
        if failures:
            logger.warning(f"{len(failures)} files could not be processed and were skipped")

        return Snapshot(
            root=str(root_path),
            files=records,
            scan_time=int(time.time()),
            failures=failures,
        )

    def _collect_files(self, root: Path) -> List[Path]:
        """
        List regular files below root, honouring ignore files.

        Symbolic links are neither followed nor recorded. Hidden entries
        are included.
        """
        files: List[Path] = []
        rules = IgnoreRules(root, self.ignore_file_names)
        pending: List[Tuple[Path, IgnoreRules]] = [(root, rules)]

        while pending:
            directory, parent_rules = pending.pop()
            dir_rules = parent_rules.descend(directory) if self.respect_ignore_files else parent_rules

            try:
                entries = list(os.scandir(directory))
            except OSError as e:
                logger.warning(f"Cannot read directory {directory}: {e}")
                continue

            for entry in entries:
                entry_path = Path(entry.path)
                try:
                    if entry.is_dir(follow_symlinks=False):
                        if not dir_rules.is_ignored(entry_path, is_dir=True):
                            pending.append((entry_path, dir_rules))
                    elif entry.is_file(follow_symlinks=False):
                        if not dir_rules.is_ignored(entry_path):
                            files.append(entry_path)
                except OSError as e:
                    logger.warning(f"Cannot inspect {entry_path}: {e}")

        return files

    def _process_file(self, root: Path, file_path: Path, collector: _RecordCollector):
        """Stat and hash one file, recording either a FileRecord or a failure."""
        try:
            record = build_record(root, file_path)
        except (OSError, InvalidPathError) as e:
            logger.warning(f"Failed to process file {file_path}: {e}")
            collector.add_failure(ScanFailure(path=str(file_path), reason=str(e)))
            return

        collector.add_record(record)


def relative_key(root: Path, file_path: Path) -> str:
    """
    Relative '/'-separated path of file_path below root.

    Raises:
        InvalidPathError: If file_path lies outside root
    """
    try:
        relative = file_path.relative_to(root)
    except ValueError:
        raise InvalidPathError(f"Path not under root: {file_path}", str(file_path))

    key = relative.as_posix()
    if key in ("", ".") or ".." in relative.parts:
        raise InvalidPathError(f"Path not under root: {file_path}", str(file_path))
    return key


def build_record(root: Path, file_path: Path) -> FileRecord:
    """
    Build the FileRecord for one file.

    Raises:
        OSError: If the file cannot be stat'ed or read
        InvalidPathError: If file_path lies outside root
    """
    key = relative_key(root, file_path)
    file_stat = os.stat(file_path)
    fingerprint = hash_file(file_path)

    return FileRecord(
        path=key,
        size=file_stat.st_size,
        mtime=max(0, math.floor(file_stat.st_mtime)),  # pre-1970 times clamp to 0
        fingerprint=fingerprint,
        permissions=stat.S_IMODE(file_stat.st_mode) if _POSIX_PERMISSIONS else None,
    )


def scan_directory(
    root: Union[str, Path],
    workers: Optional[int] = None,
    respect_ignore_files: bool = True,
    ignore_file_names: Iterable[str] = DEFAULT_IGNORE_FILES,
    progress: Optional[ProgressSink] = None
) -> Snapshot:
    """
    Convenience function to scan a directory.

    Args:
        root: Directory to scan
        workers: Size of the hashing thread pool (None = CPU count)
        respect_ignore_files: Exclude paths matched by ignore files
        ignore_file_names: Ignore file names honoured in every directory
        progress: Progress sink

    Returns:
        Snapshot of the directory
    """
    scanner = Scanner(
        workers=workers,
        respect_ignore_files=respect_ignore_files,
        ignore_file_names=tuple(ignore_file_names),
        progress=progress,
    )
    return scanner.scan(root)
