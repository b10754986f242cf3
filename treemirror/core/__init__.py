"""
treemirror Core Module

Scanner, differ, synchronizer and the orchestrator that ties them together.

Author: treemirror Project
License: MIT
"""

from .errors import (
    MirrorError,
    InvalidPathError,
    TransferError,
    VerificationError,
    SerializationError,
    ConfigError,
    ScanFailure,
)
from .models import FileRecord, Snapshot, Changeset, RenamePair, SyncReport
from .scanner import Scanner, scan_directory
from .differ import diff, similarity, path_similarity
from .synchronizer import Synchronizer, apply_changeset
from .orchestrator import Orchestrator, SyncPlan

__all__ = [
    'MirrorError', 'InvalidPathError', 'TransferError', 'VerificationError',
    'SerializationError', 'ConfigError', 'ScanFailure',
    'FileRecord', 'Snapshot', 'Changeset', 'RenamePair', 'SyncReport',
    'Scanner', 'scan_directory',
    'diff', 'similarity', 'path_similarity',
    'Synchronizer', 'apply_changeset',
    'Orchestrator', 'SyncPlan',
]
