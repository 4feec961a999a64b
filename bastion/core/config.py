"""
Bastion - Configuration Module
==============================

Process-wide configuration with environment variable validation.

DESIGN:
    A single source of truth for bot-level settings, loaded from
    environment variables at startup. Per-guild protection settings live
    in bastion.core.settings and are stored in the database.

    Key patterns:
    - Singleton pattern via get_config() ensures one Config instance
    - Validation happens once at load time, not on every access

Author: حَـــــنَّـــــا
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Set


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Bot configuration loaded from environment variables.

    Attributes:
        discord_token: Discord bot authentication token.
        superuser_id: User ID that is never punished (bot operator).
        trusted_bot_ids: Bot IDs exempt from anti-nuke tracking.
        error_webhook_url: Webhook that receives error log trees.
        database_path: SQLite file holding guild settings.
        health_check_port: Port of the health/status HTTP server.
        mass_mention_limit: Mentions in one message that count as a mass mention.
    """

    # -------------------------------------------------------------------------
    # Required: Discord
    # -------------------------------------------------------------------------

    discord_token: str

    # -------------------------------------------------------------------------
    # Optional: Identity
    # -------------------------------------------------------------------------

    superuser_id: Optional[int] = None
    trusted_bot_ids: Set[int] = field(default_factory=set)

    # -------------------------------------------------------------------------
    # Optional: Infrastructure
    # -------------------------------------------------------------------------

    error_webhook_url: Optional[str] = None
    database_path: str = "data/bastion.db"
    health_check_port: int = 8081

    # -------------------------------------------------------------------------
    # Optional: Detection
    # -------------------------------------------------------------------------

    mass_mention_limit: int = 10

    # -------------------------------------------------------------------------
    # Optional: Names of roles/channels created on demand
    # -------------------------------------------------------------------------

    quarantine_role_name: str = "Quarantined"
    pending_role_name: str = "Pending Verification"
    verification_channel_name: str = "verification"

    # -------------------------------------------------------------------------
    # Optional: Rate Limiting
    # -------------------------------------------------------------------------

    rate_limit_delay: float = 0.5  # Delay between bulk role edits


# =============================================================================
# Embed Colors
# =============================================================================

class EmbedColors:
    """Color palette for alert embeds."""

    GREEN = 0x1F5E2E
    GOLD = 0xE6B84A
    RED = 0xDC3545
    BLUE = 0x3498DB
    ORANGE = 0xFF9800

    SUCCESS = GREEN
    WARNING = GOLD
    INFO = BLUE
    DANGER = RED
    HIGH = ORANGE


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def _parse_int_optional(value: Optional[str], name: str) -> Optional[int]:
    """
    Parse optional string to integer.

    Raises:
        ConfigValidationError: If a value is set but is not an integer.
    """
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigValidationError(f"Invalid integer for {name}: {value}")


def _parse_int_set(value: Optional[str]) -> Set[int]:
    """
    Parse comma-separated string to set of integers.

    Args:
        value: Comma-separated string of integers (e.g., "123,456,789").

    Returns:
        Set of parsed integers, empty set if input is None or empty.
    """
    if not value:
        return set()
    result = set()
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            result.add(int(part))
        except ValueError:
            from bastion.core.logger import logger
            logger.warning("Config Entry Ignored", [("Value", part)])
    return result


def _parse_int_with_default(
    value: Optional[str],
    default: int,
    name: str,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """
    Parse optional integer with default and range clamping.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).

    Returns:
        Parsed integer within valid range, or default.
    """
    if not value:
        return default

    from bastion.core.logger import logger

    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default

    if min_val is not None and parsed < min_val:
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    if max_val is not None and parsed > max_val:
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return max_val
    return parsed


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """Return the URL when it looks like http(s), otherwise None."""
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from bastion.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Returns:
        Validated Config object with all settings.

    Raises:
        ConfigValidationError: If any required variable is missing or invalid.
    """
    discord_token = os.getenv("DISCORD_TOKEN")
    if not discord_token:
        raise ConfigValidationError("Missing required environment variables: DISCORD_TOKEN")

    return Config(
        discord_token=discord_token,
        superuser_id=_parse_int_optional(os.getenv("SUPERUSER_ID"), "SUPERUSER_ID"),
        trusted_bot_ids=_parse_int_set(os.getenv("TRUSTED_BOT_IDS")),
        error_webhook_url=_validate_url(os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"),
        database_path=os.getenv("DATABASE_PATH", "data/bastion.db"),
        health_check_port=_parse_int_with_default(
            os.getenv("HEALTH_CHECK_PORT"), 8081, "HEALTH_CHECK_PORT", min_val=1, max_val=65535
        ),
        mass_mention_limit=_parse_int_with_default(
            os.getenv("MASS_MENTION_LIMIT"), 10, "MASS_MENTION_LIMIT", min_val=2, max_val=100
        ),
        quarantine_role_name=os.getenv("QUARANTINE_ROLE_NAME", "Quarantined"),
        pending_role_name=os.getenv("PENDING_ROLE_NAME", "Pending Verification"),
        verification_channel_name=os.getenv("VERIFICATION_CHANNEL_NAME", "verification"),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def validate_and_log_config() -> None:
    """
    Validate configuration and log a summary at startup.

    Raises:
        ConfigValidationError: If required configuration is missing.
    """
    from bastion.core.logger import logger

    config = get_config()

    logger.tree("Configuration Validated", [
        ("Required", "✅ All required variables set"),
        ("Superuser", str(config.superuser_id) if config.superuser_id else "None"),
        ("Trusted Bots", str(len(config.trusted_bot_ids))),
        ("Database", config.database_path),
        ("Health Port", str(config.health_check_port)),
        ("Error Webhook", "Enabled" if config.error_webhook_url else "Disabled"),
    ], emoji="⚙️")


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "get_config",
    "load_config",
    "validate_and_log_config",
]
