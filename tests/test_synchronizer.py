"""
Unit Tests for Synchronizer

Tests applying changesets to a destination tree: copies, renames,
deletions, verification and failure handling.

Author: treemirror Project
License: MIT
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from treemirror.config.schema import SyncOptions
from treemirror.core.differ import diff
from treemirror.core.errors import TransferError, VerificationError
from treemirror.core.models import Changeset, FileRecord, RenamePair
from treemirror.core.scanner import scan_directory
from treemirror.core.synchronizer import Synchronizer, apply_changeset


def create_file(root, relative, content="content"):
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def tree_contents(root):
    """Map of relative path -> text for every file below root."""
    result = {}
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            full = os.path.join(dirpath, name)
            result[os.path.relpath(full, root).replace(os.sep, "/")] = Path(full).read_text()
    return result


@pytest.fixture
def trees(tmp_path):
    """Source and destination roots."""
    source = tmp_path / "source"
    dest = tmp_path / "dest"
    source.mkdir()
    dest.mkdir()
    return source, dest


def mirror(source, dest, options=None):
    changeset = diff(scan_directory(source), scan_directory(dest))
    report = apply_changeset(source, dest, changeset, options=options, workers=4)
    return changeset, report


class TestSynchronizer:
    """Test suite for Synchronizer class."""

    def test_end_to_end_scenario(self, trees):
        """Test a mixed add / modify / rename / stale run without deletion."""
        source, dest = trees
        create_file(source, "a.txt", "A")
        create_file(source, "b.txt", "B2")
        create_file(source, "moved/c.txt", "C")
        create_file(dest, "b.txt", "B1")
        create_file(dest, "c.txt", "C")
        create_file(dest, "stale.txt", "S")

        changeset, report = mirror(source, dest)

        assert [r.path for r in changeset.added] == ["a.txt"]
        assert [r.path for r in changeset.modified] == ["b.txt"]
        assert [(p.old.path, p.new.path) for p in changeset.renamed] == [("c.txt", "moved/c.txt")]
        assert [r.path for r in changeset.removed] == ["stale.txt"]

        assert tree_contents(dest) == {
            "a.txt": "A",
            "b.txt": "B2",
            "moved/c.txt": "C",
            "stale.txt": "S",
        }
        assert report.copied == 2
        assert report.renamed == 1
        assert report.deleted == 0
        assert report.bytes_copied == len("A") + len("B2") + len("C")

    def test_full_scenario_with_deletion(self, trees):
        """Test add, modify, rename and delete together in one run."""
        source, dest = trees
        create_file(source, "added.txt", "new file")
        create_file(source, "modified.txt", "version 2")
        create_file(source, "renamed_new.txt", "moved content")
        create_file(dest, "modified.txt", "version 1")
        create_file(dest, "renamed_old.txt", "moved content")
        create_file(dest, "removed.txt", "obsolete")

        changeset, report = mirror(source, dest, SyncOptions(delete_removed=True))

        assert [r.path for r in changeset.added] == ["added.txt"]
        assert [r.path for r in changeset.modified] == ["modified.txt"]
        assert [(p.old.path, p.new.path) for p in changeset.renamed] == [
            ("renamed_old.txt", "renamed_new.txt")
        ]
        assert [r.path for r in changeset.removed] == ["removed.txt"]

        assert tree_contents(dest) == {
            "added.txt": "new file",
            "modified.txt": "version 2",
            "renamed_new.txt": "moved content",
        }
        assert report.copied == 2
        assert report.renamed == 1
        assert report.deleted == 1

    def test_delete_removed(self, trees):
        """Test that stale files are deleted when requested."""
        source, dest = trees
        create_file(source, "keep.txt", "K")
        create_file(dest, "keep.txt", "K")
        create_file(dest, "stale/one.txt", "1")
        create_file(dest, "two.txt", "2")

        _, report = mirror(source, dest, SyncOptions(delete_removed=True))

        assert tree_contents(dest) == {"keep.txt": "K"}
        assert report.deleted == 2

    def test_second_run_is_empty(self, trees):
        """Test that mirroring twice leaves nothing to do."""
        source, dest = trees
        create_file(source, "x/y/z.txt", "deep")
        create_file(source, "top.txt", "top")

        mirror(source, dest, SyncOptions(delete_removed=True))
        changeset, report = mirror(source, dest, SyncOptions(delete_removed=True))

        assert changeset.is_empty
        assert report.copied == report.renamed == report.deleted == 0

    def test_empty_file(self, trees):
        """Test that empty files are mirrored."""
        source, dest = trees
        create_file(source, "empty", "")

        _, report = mirror(source, dest)

        assert (dest / "empty").read_text() == ""
        assert report.copied == 1
        assert report.bytes_copied == 0

    def test_preserve_timestamps(self, trees):
        """Test that source mtimes are carried over by default."""
        source, dest = trees
        path = create_file(source, "old.txt", "old")
        os.utime(path, (1_400_000_000, 1_400_000_000))

        mirror(source, dest)

        assert int((dest / "old.txt").stat().st_mtime) == 1_400_000_000

    def test_timestamps_not_preserved(self, trees):
        """Test that mtimes are left to the OS when preservation is off."""
        source, dest = trees
        path = create_file(source, "old.txt", "old")
        os.utime(path, (1_400_000_000, 1_400_000_000))

        mirror(source, dest, SyncOptions(preserve_timestamps=False))

        assert int((dest / "old.txt").stat().st_mtime) != 1_400_000_000

    def test_verify_after_copy(self, trees):
        """Test that verification counts every transferred file."""
        source, dest = trees
        create_file(source, "a", "1")
        create_file(source, "b/c", "2")

        _, report = mirror(source, dest, SyncOptions(verify_after_copy=True))

        assert report.verified == 2

    def test_verification_failure_keeps_rename_origin(self, trees):
        """Test that a failed rename copy never removes the old path."""
        source, dest = trees
        create_file(source, "new/photo.jpg", "pixels")
        create_file(dest, "old/photo.jpg", "pixels")

        changeset = diff(scan_directory(source), scan_directory(dest))
        assert len(changeset.renamed) == 1

        synchronizer = Synchronizer(options=SyncOptions(verify_after_copy=True), workers=1)
        with patch("treemirror.core.synchronizer.contents_equal", return_value=False):
            with pytest.raises(VerificationError) as excinfo:
                synchronizer.apply(source, dest, changeset)

        assert excinfo.value.operation == "verify"
        assert (dest / "old" / "photo.jpg").read_text() == "pixels"

    def test_copy_failure_raises_transfer_error(self, trees):
        """Test that a failing copy aborts the run with TransferError."""
        source, dest = trees
        create_file(source, "a.txt", "A")

        changeset = diff(scan_directory(source), scan_directory(dest))

        with patch(
            "treemirror.core.synchronizer.copy_with_metadata",
            side_effect=PermissionError(13, "Permission denied"),
        ):
            with pytest.raises(TransferError) as excinfo:
                apply_changeset(source, dest, changeset)

        assert excinfo.value.operation == "copy"
        assert excinfo.value.path.endswith("a.txt")

    def test_missing_source_file_raises(self, trees):
        """Test that a source file vanishing after the scan is a TransferError."""
        source, dest = trees
        changeset = Changeset(added=[FileRecord("vanished.txt", 1, 1, "a" * 64)])

        with pytest.raises(TransferError):
            apply_changeset(source, dest, changeset)

    def test_deletions_wait_for_copies(self, trees):
        """Test that a failed copy leaves stale files in place."""
        source, dest = trees
        create_file(source, "a.txt", "A")
        create_file(dest, "stale.txt", "S")

        changeset = diff(scan_directory(source), scan_directory(dest))

        with patch(
            "treemirror.core.synchronizer.copy_with_metadata",
            side_effect=OSError("disk full"),
        ):
            with pytest.raises(TransferError):
                apply_changeset(source, dest, changeset, options=SyncOptions(delete_removed=True))

        assert (dest / "stale.txt").exists()

    def test_rename_with_missing_origin(self, trees):
        """Test that an already-absent rename origin is not an error."""
        source, dest = trees
        create_file(source, "new.txt", "N")
        pair = RenamePair(
            old=FileRecord("gone.txt", 1, 1, "a" * 64),
            new=FileRecord("new.txt", 1, 1, "a" * 64),
        )

        report = apply_changeset(source, dest, Changeset(renamed=[pair]))

        assert (dest / "new.txt").read_text() == "N"
        assert report.renamed == 1

    def test_invalid_worker_count(self):
        """Test that zero workers is rejected."""
        with pytest.raises(ValueError):
            Synchronizer(options=SyncOptions(), workers=-1)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
