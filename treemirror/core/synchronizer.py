"""
Synchronizer

Applies a Changeset to the destination tree in a fixed, safety-first order:

1. copy added and modified files (in parallel),
2. for each rename, copy the new path and only then remove the old one
   (pairs in parallel, each pair sequential),
3. once all copies are done, delete removed files if requested.

An interruption between the two steps of a rename leaves a duplicate, never
a missing file. The first failure aborts the run; work already applied is
kept.

Author: treemirror Project
License: MIT
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from threading import Lock
from typing import Callable, Iterable, Optional, TypeVar, Union

from .errors import TransferError, VerificationError
from .models import Changeset, FileRecord, RenamePair, SyncReport
from .scanner import default_workers
from ..config.schema import SyncOptions
from ..utils.file_ops import (
    contents_equal,
    copy_with_metadata,
    ensure_directory,
    remove_if_present,
)
from ..utils.logger import get_logger
from ..utils.progress import ProgressSink

logger = get_logger(__name__)

T = TypeVar("T")


class Synchronizer:
    """
    Applies changesets computed by the differ.

    Each destination path is the target of at most one operation per
    changeset, so transfers run concurrently without per-file locking.
    """

    def __init__(
        self,
        options: Optional[SyncOptions] = None,
        workers: Optional[int] = None,
        progress: Optional[ProgressSink] = None
    ):
        """
        Initialize synchronizer.

        Args:
            options: Sync options (defaults to SyncOptions())
            workers: Transfer thread pool size (overrides options.workers;
                None = CPU count)
            progress: Progress sink (defaults to a silent one)
        """
        self.options = options or SyncOptions()
        workers = workers or self.options.workers
        if workers is not None and workers < 1:
            raise ValueError(f"workers must be at least 1: {workers}")

        self.workers = workers or default_workers()
        self.progress = progress or ProgressSink()
        self._report_lock = Lock()

    def apply(
        self,
        source_root: Union[str, Path],
        dest_root: Union[str, Path],
        changeset: Changeset
    ) -> SyncReport:
        """
        Apply a changeset to the destination tree.

        Args:
            source_root: Root of the source tree
            dest_root: Root of the destination tree
            changeset: Changeset computed for these roots

        Returns:
            SyncReport with counts of performed operations

        Raises:
            TransferError: On the first copy, removal or verification failure
        """
        source_root = Path(source_root)
        dest_root = Path(dest_root)
        report = SyncReport()

        total = changeset.pending_operations(self.options.delete_removed)
        logger.info(f"Applying {total} changes to {dest_root}")

        self.progress.begin("Syncing", total=total)
        try:
            to_copy = list(changeset.added) + list(changeset.modified)
            self._run_parallel(
                to_copy,
                lambda record: self._copy_record(source_root, dest_root, record, report),
            )

            self._run_parallel(
                changeset.renamed,
                lambda pair: self._apply_rename(source_root, dest_root, pair, report),
            )

            # Deletions only start after every copy above has finished
            if self.options.delete_removed:
                for record in changeset.removed:
                    self._delete_record(dest_root, record, report)
                    self.progress.advance(1)
            elif changeset.removed:
                logger.info(f"Keeping {len(changeset.removed)} destination-only files")
        finally:
            self.progress.end()

        logger.info(
            f"Sync complete: {report.copied} copied, {report.renamed} renamed, "
            f"{report.deleted} deleted"
        )
        return report

    def _run_parallel(self, items: Iterable[T], task: Callable[[T], None]):
        """Run task over items on the pool, stopping at the first failure."""
        items = list(items)
        if not items:
            return

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="treemirror-sync") as pool:
            futures = [pool.submit(task, item) for item in items]
            try:
                for future in as_completed(futures):
                    future.result()
                    self.progress.advance(1)
            except BaseException:
                for pending in futures:
                    pending.cancel()
                raise

    def _transfer(self, source: Path, destination: Path, report: SyncReport):
        """Copy one file, creating parents and verifying if configured."""
        try:
            ensure_directory(destination.parent)
            copied = copy_with_metadata(source, destination, self.options.preserve_timestamps)
        except OSError as e:
            raise TransferError(
                f"Failed to copy {source} -> {destination}: {e}", "copy", str(destination)
            ) from e

        if self.options.verify_after_copy:
            try:
                identical = contents_equal(source, destination)
            except OSError as e:
                raise VerificationError(
                    f"Could not verify {destination}: {e}", "verify", str(destination)
                ) from e
            if not identical:
                raise VerificationError(
                    f"Content mismatch after copying {source} -> {destination}",
                    "verify",
                    str(destination),
                )

        with self._report_lock:
            report.bytes_copied += copied
            if self.options.verify_after_copy:
                report.verified += 1

    def _copy_record(self, source_root: Path, dest_root: Path, record: FileRecord, report: SyncReport):
        self._transfer(source_root / record.path, dest_root / record.path, report)
        with self._report_lock:
            report.copied += 1

    def _apply_rename(self, source_root: Path, dest_root: Path, pair: RenamePair, report: SyncReport):
        """Copy the new path first, then drop the old one."""
        self._transfer(source_root / pair.new.path, dest_root / pair.new.path, report)

        old_path = dest_root / pair.old.path
        try:
            remove_if_present(old_path)
        except OSError as e:
            raise TransferError(f"Failed to remove {old_path}: {e}", "remove", str(old_path)) from e

        logger.debug(f"Renamed: {pair.old.path} -> {pair.new.path}")
        with self._report_lock:
            report.renamed += 1

    def _delete_record(self, dest_root: Path, record: FileRecord, report: SyncReport):
        target = dest_root / record.path
        try:
            remove_if_present(target)
        except OSError as e:
            raise TransferError(f"Failed to remove {target}: {e}", "remove", str(target)) from e

        report.deleted += 1


def apply_changeset(
    source_root: Union[str, Path],
    dest_root: Union[str, Path],
    changeset: Changeset,
    options: Optional[SyncOptions] = None,
    workers: Optional[int] = None,
    progress: Optional[ProgressSink] = None
) -> SyncReport:
    """
    Convenience function to apply a changeset.

    Args:
        source_root: Root of the source tree
        dest_root: Root of the destination tree
        changeset: Changeset to apply
        options: Sync options
        workers: Transfer thread pool size
        progress: Progress sink

    Returns:
        SyncReport for the run
    """
    synchronizer = Synchronizer(options=options, workers=workers, progress=progress)
    return synchronizer.apply(source_root, dest_root, changeset)
