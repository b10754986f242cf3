"""
treemirror

One-way directory mirroring: scan a source and a destination tree, compute
the minimal changeset using content fingerprints (detecting moved files),
and apply it so the destination matches the source.

Author: treemirror Project
License: MIT
"""

__version__ = "0.1.0"

from .core import (
    Changeset,
    FileRecord,
    MirrorError,
    Orchestrator,
    Snapshot,
    SyncReport,
    apply_changeset,
    diff,
    scan_directory,
)

__all__ = [
    '__version__',
    'Changeset', 'FileRecord', 'MirrorError', 'Orchestrator', 'Snapshot',
    'SyncReport', 'apply_changeset', 'diff', 'scan_directory',
]
