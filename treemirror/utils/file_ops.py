"""
File Operation Utilities

Content hashing and the low-level transfer primitives used by the
synchronizer: copy with metadata, idempotent removal and byte-for-byte
comparison.

Author: treemirror Project
License: MIT
"""

import os
import shutil
import hashlib
from pathlib import Path
from typing import Optional, Union

from .logger import get_logger

logger = get_logger(__name__)

PathLike = Union[str, os.PathLike]

HASH_ALGORITHM = "sha256"
CHUNK_SIZE = 65536  # 64KB chunks for hashing and comparison


class ContentHasher:
    """
    Incremental content hasher.

    Wraps a hashlib object behind a start/feed/finish interface so callers
    can stream bytes in without holding a whole file in memory.
    """

    def __init__(self, algorithm: str = HASH_ALGORITHM):
        try:
            hashlib.new(algorithm)
        except ValueError:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        self.algorithm = algorithm
        self._hash = None

    def start(self) -> "ContentHasher":
        """Begin a new digest, discarding any previous state."""
        self._hash = hashlib.new(self.algorithm)
        return self

    def feed(self, data: bytes) -> None:
        """Add bytes to the running digest."""
        if self._hash is None:
            raise RuntimeError("feed() called before start()")
        self._hash.update(data)

    def finish(self) -> str:
        """Return the hex digest and reset the hasher."""
        if self._hash is None:
            raise RuntimeError("finish() called before start()")
        digest = self._hash.hexdigest()
        self._hash = None
        return digest


def hash_bytes(data: bytes, algorithm: str = HASH_ALGORITHM) -> str:
    """Fingerprint an in-memory byte string."""
    hasher = ContentHasher(algorithm).start()
    hasher.feed(data)
    return hasher.finish()


def hash_file(file_path: PathLike, algorithm: str = HASH_ALGORITHM, chunk_size: int = CHUNK_SIZE) -> str:
    """
    Calculate the content fingerprint of a file.

    Reads the file in fixed-size chunks so memory use does not depend on
    file size.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm (sha256 by default)
        chunk_size: Size of chunks to read (bytes)

    Returns:
        Hexadecimal hash string

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If algorithm is unsupported
    """
    hasher = ContentHasher(algorithm).start()

    with open(file_path, 'rb') as f:
        while chunk := f.read(chunk_size):
            hasher.feed(chunk)

    return hasher.finish()


def copy_with_metadata(source: PathLike, destination: PathLike, preserve_timestamps: bool = True) -> int:
    """
    Copy a file, overwriting the destination.

    Permission bits are always carried over; the modification time only
    when preserve_timestamps is set. The destination's parent directory
    must already exist.

    Args:
        source: Source file path
        destination: Destination file path
        preserve_timestamps: Set destination mtime/atime to the source's

    Returns:
        Number of bytes copied

    Raises:
        OSError: If the copy fails
    """
    if preserve_timestamps:
        shutil.copy2(source, destination)
    else:
        shutil.copyfile(source, destination)
        shutil.copymode(source, destination)

    size = os.path.getsize(destination)
    logger.debug(f"Copied: {source} -> {destination} ({size} bytes)")
    return size


def remove_if_present(path: PathLike) -> bool:
    """
    Remove a file, treating an already-absent file as success.

    Args:
        path: File to remove

    Returns:
        True if a file was removed, False if it was already gone

    Raises:
        OSError: For any failure other than the file being absent
    """
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.debug(f"Already absent: {path}")
        return False
    logger.debug(f"Removed: {path}")
    return True


def contents_equal(first: PathLike, second: PathLike, chunk_size: int = CHUNK_SIZE) -> bool:
    """
    Compare two files byte for byte.

    Args:
        first: Path to the first file
        second: Path to the second file
        chunk_size: Size of chunks to compare (bytes)

    Returns:
        True if both files have identical content
    """
    if os.path.getsize(first) != os.path.getsize(second):
        return False

    with open(first, 'rb') as a, open(second, 'rb') as b:
        while True:
            chunk_a = a.read(chunk_size)
            chunk_b = b.read(chunk_size)
            if chunk_a != chunk_b:
                return False
            if not chunk_a:
                return True


def ensure_directory(directory: PathLike) -> Path:
    """
    Ensure a directory exists, creating it and its parents if necessary.

    Concurrent creation by another thread is not an error.

    Args:
        directory: Directory path

    Returns:
        The directory as a Path

    Raises:
        FileExistsError: If the path exists but is not a directory
    """
    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)
    return path


def format_size(num_bytes: Optional[int]) -> str:
    """Human-readable byte count (e.g. ``1.5 MB``)."""
    if num_bytes is None:
        return "?"
    size = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size < 1024 or unit == "TB":
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
