"""SQLite-backed store for session, credential, aliases, preferences and the error log."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Optional

import sqlite_utils
from sqlite_utils.db import NotFoundError

from .exceptions import StorageError
from .models import Alias, ErrorRecord, Preferences, Session

logger = logging.getLogger(__name__)

SESSION_KEY = "session"
SECRET_KEY = "password"
ALIASES_KEY = "sub_emails"
PREFERENCES_KEY = "preferences"


class LocalStore:
    """Key/value state plus an append-only error log."""

    STATE_TABLE = "state"
    ERROR_TABLE = "error_log"

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = db_path
        if db_path is None:
            self.db = sqlite_utils.Database(memory=True)
        else:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.db = sqlite_utils.Database(str(db_path))
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self.db[self.STATE_TABLE].create(
            {"key": str, "value": str, "updated_at": str},
            pk="key",
            if_not_exists=True,
        )
        self.db[self.ERROR_TABLE].create(
            {
                "id": int,
                "timestamp": int,
                "context": str,
                "kind": str,
                "message": str,
                "stack": str,
            },
            pk="id",
            if_not_exists=True,
        )

    def put(self, key: str, value: Any) -> None:
        try:
            self.db[self.STATE_TABLE].upsert(
                {
                    "key": key,
                    "value": json.dumps(value),
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                },
                pk="key",
            )
        except sqlite3.Error as exc:
            raise StorageError(f"Local storage write failed for {key}: {exc}") from exc

    def get(self, key: str) -> Any:
        try:
            row = self.db[self.STATE_TABLE].get(key)
        except NotFoundError:
            return None
        except sqlite3.Error as exc:
            raise StorageError(f"Local storage read failed for {key}: {exc}") from exc
        try:
            return json.loads(row["value"])
        except ValueError as exc:
            raise StorageError(f"Local storage holds an unreadable value for {key}") from exc

    def delete(self, key: str) -> None:
        try:
            self.db[self.STATE_TABLE].delete_where("key = ?", [key])
        except sqlite3.Error as exc:
            raise StorageError(f"Local storage delete failed for {key}: {exc}") from exc

    def append_error(self, record: ErrorRecord) -> None:
        try:
            self.db[self.ERROR_TABLE].insert(record.to_dict())
        except sqlite3.Error as exc:
            raise StorageError(f"Local storage could not append to the error log: {exc}") from exc

    def recent_errors(self, limit: int = 50) -> list[dict]:
        return list(self.db[self.ERROR_TABLE].rows_where(order_by="id desc", limit=limit))

    async def persist_session(self, session: Session) -> None:
        self.put(SESSION_KEY, session.to_dict())

    async def load_session(self) -> Optional[Session]:
        raw = self.get(SESSION_KEY)
        return Session.from_dict(raw) if raw else None

    async def forget_session(self) -> None:
        self.delete(SESSION_KEY)

    async def persist_secret(self, secret: str) -> None:
        self.put(SECRET_KEY, secret)

    async def load_secret(self) -> Optional[str]:
        return self.get(SECRET_KEY)

    async def persist_alias_list(self, aliases: list[Alias]) -> None:
        self.put(ALIASES_KEY, [alias.to_dict() for alias in aliases])

    async def load_alias_list(self) -> list[Alias]:
        return [Alias.from_dict(raw) for raw in self.get(ALIASES_KEY) or []]

    async def persist_preferences(self, preferences: Preferences) -> None:
        self.put(PREFERENCES_KEY, preferences.to_dict())

    async def load_preferences(self) -> Optional[Preferences]:
        raw = self.get(PREFERENCES_KEY)
        return Preferences.from_dict(raw) if raw else None

    async def log_error(self, record: ErrorRecord) -> None:
        self.append_error(record)
        logger.debug("Recorded %s error for %s", record.kind, record.context)
