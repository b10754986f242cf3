"""
Orchestrator

Coordinates one mirroring run: scan both trees (or load a cached
destination snapshot), compute the changeset, and apply it.

Author: treemirror Project
License: MIT
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .differ import diff
from .errors import InvalidPathError
from .models import Changeset, Snapshot, SyncReport
from .scanner import Scanner
from .synchronizer import Synchronizer
from ..config.schema import MirrorConfig
from ..utils.logger import get_logger
from ..utils.progress import ProgressSink

logger = get_logger(__name__)


@dataclass
class SyncPlan:
    """Everything computed before the destination is touched."""
    source: Snapshot
    dest: Snapshot
    changeset: Changeset

    @property
    def skipped(self) -> int:
        """Files left out of either scan because they could not be read."""
        return self.source.skipped + self.dest.skipped

    def has_work(self, delete_removed: bool) -> bool:
        """True if applying the plan would change the destination."""
        return self.changeset.pending_operations(delete_removed) > 0


class Orchestrator:
    """
    Runs the scan -> diff -> apply pipeline for a source/destination pair.

    All tuning comes from the MirrorConfig passed in, so several
    orchestrators with different settings can coexist in one process.
    """

    def __init__(self, config: Optional[MirrorConfig] = None, progress: Optional[ProgressSink] = None):
        """
        Initialize orchestrator.

        Args:
            config: Application configuration (defaults to MirrorConfig())
            progress: Progress sink shared by the scanner and synchronizer
        """
        self.config = config or MirrorConfig()
        self.progress = progress or ProgressSink()

        self.scanner = Scanner(
            workers=self.config.scan.workers,
            respect_ignore_files=self.config.scan.respect_ignore_files,
            ignore_file_names=self.config.scan.ignore_file_names,
            progress=self.progress,
        )
        self.synchronizer = Synchronizer(
            options=self.config.sync,
            progress=self.progress,
        )

        logger.debug("Orchestrator initialized")

    def plan(
        self,
        source_root: Union[str, Path],
        dest_root: Union[str, Path],
        dest_snapshot: Optional[Snapshot] = None
    ) -> SyncPlan:
        """
        Scan and diff without modifying anything.

        Args:
            source_root: Source directory
            dest_root: Destination directory
            dest_snapshot: Previously saved destination snapshot to compare
                against instead of rescanning dest_root

        Returns:
            SyncPlan with both snapshots and the changeset

        Raises:
            InvalidPathError: If either root is missing or not a directory
        """
        dest_path = Path(dest_root).expanduser()
        if not dest_path.is_dir():
            raise InvalidPathError(f"Destination is not a directory: {dest_path}", str(dest_path))

        source = self.scanner.scan(source_root)

        if dest_snapshot is None:
            dest = self.scanner.scan(dest_path)
        else:
            if Path(dest_snapshot.root).expanduser().resolve() != dest_path.resolve():
                logger.warning(
                    f"Destination snapshot was taken of {dest_snapshot.root}, not {dest_path.resolve()}"
                )
            logger.info(f"Using cached destination snapshot of {dest_snapshot.root}")
            dest = dest_snapshot

        changeset = diff(source, dest)
        return SyncPlan(source=source, dest=dest, changeset=changeset)

    def execute(
        self,
        plan: SyncPlan,
        dest_root: Union[str, Path]
    ) -> SyncReport:
        """
        Apply a plan to the destination.

        Args:
            plan: Plan returned by plan()
            dest_root: Destination directory

        Returns:
            SyncReport for the run
        """
        return self.synchronizer.apply(plan.source.root, Path(dest_root).expanduser(), plan.changeset)

    def run(
        self,
        source_root: Union[str, Path],
        dest_root: Union[str, Path]
    ) -> SyncReport:
        """Plan and apply in one step, without confirmation."""
        plan = self.plan(source_root, dest_root)
        if not plan.has_work(self.config.sync.delete_removed):
            logger.info("In sync")
            return SyncReport()
        return self.execute(plan, dest_root)
