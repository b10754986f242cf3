"""Ignore-file handling for directory scans.

Patterns follow .gitignore (gitwildmatch) semantics and are anchored at the
directory that holds the ignore file, so a nested ``.gitignore`` only
affects its own subtree.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from pathspec import PathSpec

from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_IGNORE_FILES = (".gitignore", ".ignore")


def load_ignore_spec(directory: Path, ignore_file_names: Iterable[str]) -> Optional[PathSpec]:
    """Load the ignore files present in ``directory`` into one PathSpec.

    Args:
        directory: Directory to look for ignore files in
        ignore_file_names: File names to read (e.g. ``.gitignore``)

    Returns:
        A compiled PathSpec, or None when the directory has no patterns
    """
    lines: List[str] = []
    for name in ignore_file_names:
        ignore_file = directory / name
        if not ignore_file.is_file():
            continue
        try:
            with ignore_file.open("r", encoding="utf-8", errors="replace") as f:
                lines.extend(f.read().splitlines())
        except OSError as e:
            logger.warning(f"Could not read ignore file {ignore_file}: {e}")

    patterns = [line for line in lines if line.strip() and not line.lstrip().startswith("#")]
    if not patterns:
        return None
    return PathSpec.from_lines("gitwildmatch", patterns)


class IgnoreRules:
    """Stack of ignore specs collected while descending a directory tree.

    Instances are immutable: ``descend`` returns a new object, so sibling
    directories never see each other's patterns.
    """

    def __init__(self, root: Path, ignore_file_names: Iterable[str] = DEFAULT_IGNORE_FILES,
                 _specs: Tuple[Tuple[Path, PathSpec], ...] = ()):
        self.root = root
        self.ignore_file_names = tuple(ignore_file_names)
        self._specs = _specs

    def descend(self, directory: Path) -> "IgnoreRules":
        """Return the rules in effect inside ``directory``."""
        spec = load_ignore_spec(directory, self.ignore_file_names)
        if spec is None:
            return self
        return IgnoreRules(self.root, self.ignore_file_names, self._specs + ((directory, spec),))

    def is_ignored(self, path: Path, is_dir: bool = False) -> bool:
        """Check whether ``path`` is excluded by any ignore file above it."""
        for base, spec in self._specs:
            try:
                relative = path.relative_to(base).as_posix()
            except ValueError:
                continue
            if is_dir:
                relative += "/"
            if spec.match_file(relative):
                return True
        return False
