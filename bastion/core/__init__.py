"""
Bastion - Core Package
======================

Configuration, persistence, logging and shared detector state.

DESIGN:
    Process-wide singletons:
    - get_config() returns the same Config instance
    - get_db() returns the same DatabaseManager instance
    - logger is a global TreeLogger instance

Author: حَـــــنَّـــــا
"""

# =============================================================================
# Core Imports
# =============================================================================

from .config import (
    Config,
    ConfigValidationError,
    EmbedColors,
    get_config,
)

from .database import DatabaseManager, SettingsStore, get_db

from .logger import logger, TreeLogger

from .health import HealthCheckServer


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Config
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "get_config",
    # Database
    "DatabaseManager",
    "SettingsStore",
    "get_db",
    # Logger
    "logger",
    "TreeLogger",
    # Health
    "HealthCheckServer",
]
