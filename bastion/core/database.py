"""
Bastion - Database Module
=========================

SQLite persistence for per-guild settings.

DESIGN:
    Thread-safe wrapper around a single sqlite3 connection in WAL mode.
    Settings are stored as one JSON document per guild together with the
    payload version, and decoded into GuildSettings by SettingsStore.

Author: حَـــــنَّـــــا
"""

import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple

from bastion.core.logger import logger
from bastion.core.settings import GuildSettings, SETTINGS_VERSION


# =============================================================================
# Helper Functions
# =============================================================================

def _safe_json_loads(value: Optional[str]) -> Optional[Dict[str, Any]]:
    """Parse a JSON object, returning None on corrupt data."""
    if not value:
        return None
    try:
        data = json.loads(value)
    except (json.JSONDecodeError, ValueError):
        logger.warning("Corrupted JSON In Database", [
            ("Preview", value[:50]),
        ])
        return None
    return data if isinstance(data, dict) else None


# =============================================================================
# Database Manager
# =============================================================================

class DatabaseManager:
    """
    Database connection with thread-safe execution helpers.

    DESIGN: One connection shared across threads, guarded by a lock.
    Uses WAL mode for concurrent readers.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self._db_lock: threading.Lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._connect()
        self._init_schema()

    # =========================================================================
    # Connection Management
    # =========================================================================

    def _connect(self) -> None:
        """Establish database connection with WAL mode."""
        try:
            self._conn = sqlite3.connect(
                str(self.path),
                check_same_thread=False,
                timeout=30.0,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute("PRAGMA busy_timeout=5000")
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            logger.error("Database Connection Failed", [
                ("Path", str(self.path)),
                ("Error", str(e)),
            ])
            raise

    def _ensure_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._connect()
        return self._conn

    def _init_schema(self) -> None:
        self.execute("""
            CREATE TABLE IF NOT EXISTS guild_settings (
                guild_id INTEGER PRIMARY KEY,
                version INTEGER NOT NULL,
                data TEXT NOT NULL,
                updated_at REAL NOT NULL
            )
        """)

    def execute(
        self,
        query: str,
        params: Tuple = (),
        commit: bool = True,
    ) -> sqlite3.Cursor:
        """Execute a query with thread safety."""
        with self._db_lock:
            conn = self._ensure_connection()
            cursor = conn.cursor()
            cursor.execute(query, params)
            if commit:
                conn.commit()
            return cursor

    def fetchone(self, query: str, params: Tuple = ()) -> Optional[sqlite3.Row]:
        cursor = self.execute(query, params, commit=False)
        return cursor.fetchone()

    def fetchall(self, query: str, params: Tuple = ()) -> List[sqlite3.Row]:
        cursor = self.execute(query, params, commit=False)
        return cursor.fetchall()

    def close(self) -> None:
        """Close database connection."""
        with self._db_lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.info("Database Connection Closed")


# =============================================================================
# Settings Provider
# =============================================================================

class SettingsProvider(Protocol):
    """Where the guard reads and writes per-guild settings."""

    def get(self, guild_id: int) -> GuildSettings: ...

    def set(self, guild_id: int, settings: GuildSettings) -> None: ...


class SettingsStore:
    """
    GuildSettings persisted in the guild_settings table.

    DESIGN:
        Reads go through a small in-process cache because every tracked
        action and every join consults the settings. Writes update the
        row and the cache together.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db
        self._cache: Dict[int, GuildSettings] = {}

    def get(self, guild_id: int) -> GuildSettings:
        """
        Get settings for a guild, with defaults for anything unset.

        Args:
            guild_id: Guild to look up.

        Returns:
            GuildSettings, a fresh default instance for unknown guilds.
        """
        cached = self._cache.get(guild_id)
        if cached is not None:
            return cached

        row = self.db.fetchone(
            "SELECT version, data FROM guild_settings WHERE guild_id = ?",
            (guild_id,),
        )
        payload = _safe_json_loads(row["data"]) if row else None

        try:
            settings = GuildSettings.from_dict(payload)
        except (TypeError, ValueError, KeyError) as e:
            logger.warning("Guild Settings Invalid, Using Defaults", [
                ("Guild", str(guild_id)),
                ("Error", str(e)[:100]),
            ])
            settings = GuildSettings()

        if row and row["version"] != SETTINGS_VERSION:
            logger.info("Guild Settings Upgraded", [
                ("Guild", str(guild_id)),
                ("From", str(row["version"])),
                ("To", str(SETTINGS_VERSION)),
            ])
            self.set(guild_id, settings)

        self._cache[guild_id] = settings
        return settings

    def set(self, guild_id: int, settings: GuildSettings) -> None:
        """Persist settings for a guild."""
        self.db.execute(
            """
            INSERT INTO guild_settings (guild_id, version, data, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(guild_id) DO UPDATE SET
                version = excluded.version,
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            (guild_id, SETTINGS_VERSION, json.dumps(settings.to_dict()), time.time()),
        )
        self._cache[guild_id] = settings

        logger.debug("Guild Settings Saved", [
            ("Guild", str(guild_id)),
        ])


# =============================================================================
# Global Instance
# =============================================================================

_db: Optional[DatabaseManager] = None


def get_db() -> DatabaseManager:
    """Get the process-wide database, opening it on first use."""
    global _db
    if _db is None:
        from bastion.core.config import get_config
        _db = DatabaseManager(get_config().database_path)
    return _db


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "DatabaseManager",
    "SettingsProvider",
    "SettingsStore",
    "get_db",
]
