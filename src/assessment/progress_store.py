"""
Progress persistence for in-flight assessment sessions.

Enables resume so users can close the terminal and continue later.
Each assessment type owns exactly one slot (its storage key); snapshots
are stored as JSON in ~/.assessment/progress/<key>.json by default.
Slots older than the retention window (24 hours) are treated as stale.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional, Protocol

from loguru import logger

from .models import PersistedSnapshot, utcnow

# Default progress directory
PROGRESS_DIR = Path.home() / ".assessment" / "progress"

SCHEMA_VERSION = 1
DEFAULT_RETENTION = timedelta(hours=24)


class KeyValueStorage(Protocol):
    """Synchronous string key/value storage."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...

    def contains(self, key: str) -> bool: ...


class JsonFileStorage:
    """One JSON file per key inside a directory."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = directory or PROGRESS_DIR
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        filepath = self._path(key)
        if not filepath.exists():
            return None
        with open(filepath, "r", encoding="utf-8") as f:
            return f.read()

    def set(self, key: str, value: str) -> None:
        with open(self._path(key), "w", encoding="utf-8") as f:
            f.write(value)

    def delete(self, key: str) -> bool:
        filepath = self._path(key)
        if filepath.exists():
            filepath.unlink()
            return True
        return False

    def contains(self, key: str) -> bool:
        return self._path(key).exists()


class MemoryStorage:
    """Dictionary-backed storage, for tests and throwaway sessions."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None

    def contains(self, key: str) -> bool:
        return key in self.data


class ProgressStore:
    """
    Single-slot snapshot store for one assessment type.

    Saving a new session overwrites whatever was stored before, so at most
    one resumable session exists per type.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str,
        retention: timedelta = DEFAULT_RETENTION,
        now: Callable[[], datetime] = utcnow,
    ):
        self.storage = storage
        self.key = key
        self.retention = retention
        self._now = now

    def save(self, snapshot: PersistedSnapshot) -> PersistedSnapshot:
        """Overwrite the slot, stamping ``saved_at`` and the schema version."""
        snapshot.saved_at = self._now()
        snapshot.schema_version = SCHEMA_VERSION
        self.storage.set(self.key, json.dumps(snapshot.to_dict(), indent=2))
        logger.debug(
            f"Progress saved [{self.key}] session={snapshot.session_id} "
            f"index={snapshot.current_index} answers={len(snapshot.answers)} "
            f"left={snapshot.seconds_remaining}s"
        )
        return snapshot

    def load(self, expected_session_id: Optional[str] = None) -> Optional[PersistedSnapshot]:
        """
        Return the stored snapshot if it is fresh and (optionally) matches.

        Expired, corrupted or wrong-version slots are cleared on the way out.
        A snapshot for a different session is left untouched.
        """
        raw = self.storage.get(self.key)
        if raw is None:
            return None

        try:
            snapshot = PersistedSnapshot.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable progress [{self.key}]: {e}")
            self.clear()
            return None

        if snapshot.schema_version != SCHEMA_VERSION:
            logger.info(
                f"Discarding progress [{self.key}] with schema version {snapshot.schema_version}"
            )
            self.clear()
            return None

        if self.is_stale(snapshot):
            logger.info(f"Progress [{self.key}] expired, clearing")
            self.clear()
            return None

        if expected_session_id is not None and snapshot.session_id != expected_session_id:
            logger.debug(
                f"Requested session {expected_session_id} does not match stored "
                f"session {snapshot.session_id}"
            )
            return None

        return snapshot

    def is_stale(self, snapshot: PersistedSnapshot) -> bool:
        saved_at = snapshot.saved_at or snapshot.last_persisted_at
        return self._now() - saved_at > self.retention

    def clear(self) -> bool:
        removed = self.storage.delete(self.key)
        if removed:
            logger.debug(f"Progress cleared [{self.key}]")
        return removed

    def exists(self) -> bool:
        """Cheap presence check; does not check freshness."""
        return self.storage.contains(self.key)


def completion_percentage(snapshot: PersistedSnapshot) -> int:
    """Share of questions answered, 0-100."""
    total = len(snapshot.ordered_question_ids)
    if total == 0:
        return 0
    return round(len(snapshot.answers) / total * 100)
