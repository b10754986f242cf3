"""
treemirror Configuration Module

Handles configuration loading, validation, and management. Supports
YAML-based configuration with environment variable overrides.

Author: treemirror Project
License: MIT
"""

from .schema import MirrorConfig, LoggingConfig, ScanConfig, SyncOptions, LogLevel
from .config_loader import ConfigLoader, load_config

__all__ = [
    'MirrorConfig', 'LoggingConfig', 'ScanConfig', 'SyncOptions', 'LogLevel',
    'ConfigLoader', 'load_config',
]
