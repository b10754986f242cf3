"""
Configuration Schema and Models

Defines Pydantic models for the configuration schema, providing validation,
default values, and type checking for all configuration options.

Author: treemirror Project
License: MIT
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class LogLevel(str, Enum):
    """Logging level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _validate_workers(v):
    if v is not None and v < 1:
        raise ValueError(f"workers must be at least 1: {v}")
    return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    log_level: LogLevel = Field(
        default=LogLevel.WARNING,
        description="Console and file logging level (WARNING keeps command output clean)"
    )
    log_to_file: bool = Field(
        default=False,
        description="Enable logging to file"
    )
    log_file_path: str = Field(
        default="~/.local/state/treemirror/treemirror.log",
        description="Log file location (used when log_to_file is enabled)"
    )
    log_rotation_size: int = Field(
        default=10485760,  # 10MB
        description="Log file size before rotation (bytes)"
    )
    log_retention_count: int = Field(
        default=5,
        description="Number of rotated log files to keep"
    )
    json_format: bool = Field(
        default=False,
        description="Emit log records as JSON"
    )

    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class ScanConfig(BaseModel):
    """Directory scanning configuration."""

    workers: Optional[int] = Field(
        default=None,
        description="Hashing worker threads (None = logical CPU count)"
    )
    respect_ignore_files: bool = Field(
        default=True,
        description="Exclude paths matched by ignore files"
    )
    ignore_file_names: List[str] = Field(
        default=[".gitignore", ".ignore"],
        description="Ignore file names read in every scanned directory"
    )

    @field_validator("workers")
    @classmethod
    def validate_workers(cls, v):
        """Ensure the worker count is positive."""
        return _validate_workers(v)

    @field_validator("ignore_file_names")
    @classmethod
    def validate_ignore_file_names(cls, v):
        """Ignore file names must be bare file names."""
        for name in v:
            if not name or "/" in name or "\\" in name:
                raise ValueError(f"Ignore file name must be a bare file name: {name!r}")
        return v


class SyncOptions(BaseModel):
    """Options controlling how a changeset is applied to the destination."""

    delete_removed: bool = Field(
        default=False,
        description="Delete destination files that are absent from the source"
    )
    preserve_timestamps: bool = Field(
        default=True,
        description="Set destination modification times to the source's"
    )
    verify_after_copy: bool = Field(
        default=False,
        description="Compare destination content with the source after every copy"
    )
    workers: Optional[int] = Field(
        default=None,
        description="Transfer worker threads (None = logical CPU count)"
    )

    @field_validator("workers")
    @classmethod
    def validate_workers(cls, v):
        """Ensure the worker count is positive."""
        return _validate_workers(v)


class MirrorConfig(BaseModel):
    """
    Root configuration model for treemirror.

    Loaded from config.yaml and overridable by environment variables and
    command-line flags.
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    sync: SyncOptions = Field(default_factory=SyncOptions)

    model_config = ConfigDict(use_enum_values=True, validate_default=True, validate_assignment=True)
