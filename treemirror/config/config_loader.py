"""
Configuration Loading

Settings are layered in this order, later layers winning:

1. defaults from the schema,
2. the YAML file (``--config``, ``TREEMIRROR_CONFIG`` or
   ``~/.config/treemirror/config.yaml``; a missing file is not an error),
3. ``TREEMIRROR_*`` environment variables, including any set in a ``.env``
   file in the working directory.

Command-line flags are applied on top by the CLI.

Author: treemirror Project
License: MIT
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

from .schema import MirrorConfig
from ..core.errors import ConfigError

DEFAULT_CONFIG_PATH = "~/.config/treemirror/config.yaml"

_TRUE_VALUES = ("1", "true", "yes", "on")


def _as_flag(raw: str) -> bool:
    return raw.strip().lower() in _TRUE_VALUES


def _as_workers(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"TREEMIRROR_WORKERS must be an integer: {raw!r}")


# variable -> (converter, [(section, key), ...])
ENV_OVERRIDES: Dict[str, Tuple[Callable[[str], Any], Tuple[Tuple[str, str], ...]]] = {
    "TREEMIRROR_LOG_LEVEL": (str.upper, (("logging", "log_level"),)),
    "TREEMIRROR_WORKERS": (_as_workers, (("scan", "workers"), ("sync", "workers"))),
    "TREEMIRROR_RESPECT_IGNORE_FILES": (_as_flag, (("scan", "respect_ignore_files"),)),
    "TREEMIRROR_DELETE_REMOVED": (_as_flag, (("sync", "delete_removed"),)),
    "TREEMIRROR_PRESERVE_TIMESTAMPS": (_as_flag, (("sync", "preserve_timestamps"),)),
    "TREEMIRROR_VERIFY_AFTER_COPY": (_as_flag, (("sync", "verify_after_copy"),)),
}


class ConfigLoader:
    """
    Reads, validates and writes treemirror configuration.

    The loader remembers the last configuration it produced, so callers can
    hold on to one instance and call reload() after editing the file.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: YAML file to read. Falls back to TREEMIRROR_CONFIG,
                then to DEFAULT_CONFIG_PATH.
        """
        load_dotenv(find_dotenv(usecwd=True))

        chosen = config_path or os.getenv("TREEMIRROR_CONFIG") or DEFAULT_CONFIG_PATH
        self.config_path = str(Path(chosen).expanduser())
        self._config: Optional[MirrorConfig] = None

    def load(self) -> MirrorConfig:
        """
        Build the effective configuration.

        Raises:
            ConfigError: If the file is unreadable, is not a YAML mapping,
                or any value fails validation
        """
        raw = self._read_file()
        self._apply_environment(raw)

        try:
            self._config = MirrorConfig(**raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {self.config_path}: {e}") from e

        return self._config

    def _read_file(self) -> Dict[str, Any]:
        """Parse the YAML file into a dict; an absent file gives {}."""
        path = Path(self.config_path)
        if not path.exists():
            return {}

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML config {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read config {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        # An empty section (``scan:`` with nothing below) means defaults
        return {key: ({} if value is None else value) for key, value in data.items()}

    def _apply_environment(self, raw: Dict[str, Any]) -> None:
        """Overlay TREEMIRROR_* variables onto the parsed file in place."""
        for variable, (convert, targets) in ENV_OVERRIDES.items():
            value = os.getenv(variable)
            if not value:
                continue
            converted = convert(value)
            for section, key in targets:
                self._section(raw, section)[key] = converted

        # A log file path implies file logging
        log_file = os.getenv("TREEMIRROR_LOG_FILE")
        if log_file:
            section = self._section(raw, "logging")
            section["log_to_file"] = True
            section["log_file_path"] = log_file

    def _section(self, raw: Dict[str, Any], name: str) -> Dict[str, Any]:
        """Mapping for one top-level section, created if absent or empty."""
        section = raw.get(name)
        if section is None:
            section = raw[name] = {}
        elif not isinstance(section, dict):
            raise ConfigError(f"Section '{name}' in {self.config_path} must be a mapping")
        return section

    def save(self, config: MirrorConfig, path: Optional[str] = None) -> None:
        """
        Write a configuration as YAML.

        Args:
            config: Configuration to write
            path: Target file (defaults to the loader's config_path)

        Raises:
            ConfigError: If the file cannot be written
        """
        target = Path(path or self.config_path).expanduser()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise ConfigError(f"Failed to write config {target}: {e}") from e

    def reload(self) -> MirrorConfig:
        """Re-read the file and environment."""
        return self.load()

    @property
    def config(self) -> Optional[MirrorConfig]:
        """Configuration from the most recent load(), if any."""
        return self._config


def load_config(config_path: Optional[str] = None) -> MirrorConfig:
    """Load configuration with a throwaway ConfigLoader."""
    return ConfigLoader(config_path).load()
