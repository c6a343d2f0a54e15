from __future__ import annotations

import copy
import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any
from uuid import uuid4

from prm.domain.dates import utc_now
from prm.store.migrations import SCHEMA_PATH, apply_schema, current_version

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[str, Any] = {
    "currency": "USD",
}

# teams, contacts and team_members are keyed by id / team id; the rest are lists.
COLLECTION_DEFAULTS: dict[str, Any] = {
    "teams": {},
    "contacts": {},
    "team_members": {},
    "deals": [],
    "touchpoints": [],
    "tasks": [],
    "relationships": [],
    "settings": DEFAULT_SETTINGS,
}

COLLECTIONS = tuple(COLLECTION_DEFAULTS)


class StoreError(RuntimeError):
    pass


def _check_name(name: str) -> None:
    if name not in COLLECTION_DEFAULTS:
        raise StoreError(f"Unknown collection: {name}")


def _merge_default(name: str, payload: Any) -> Any:
    default = copy.deepcopy(COLLECTION_DEFAULTS[name])
    if payload is None or type(payload) is not type(default):
        return default
    if name == "settings":
        return {**default, **payload}
    return payload


class SqliteSession:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get_all(self, name: str) -> Any:
        _check_name(name)
        row = self._conn.execute(
            "SELECT payload FROM collections WHERE name = ?", (name,)
        ).fetchone()
        payload = json.loads(row["payload"]) if row else None
        return _merge_default(name, payload)

    def replace_all(self, name: str, payload: Any) -> None:
        _check_name(name)
        encoded = json.dumps(payload, sort_keys=True)
        self._conn.execute(
            "INSERT INTO collections (name, payload, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(name) DO UPDATE SET payload=excluded.payload, updated_at=excluded.updated_at",
            (name, encoded, utc_now().isoformat()),
        )

    def save_snapshot(self, reason: str, payload: dict[str, Any]) -> str:
        snapshot_id = str(uuid4())
        self._conn.execute(
            "INSERT INTO snapshots (snapshot_id, reason, payload, created_at) VALUES (?, ?, ?, ?)",
            (snapshot_id, reason, json.dumps(payload, sort_keys=True), utc_now().isoformat()),
        )
        return snapshot_id


class CollectionStore:
    """Get-all / replace-all store with one JSON document per collection."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    @contextmanager
    def connect(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def session(self) -> SqliteSession:
        with self.connect() as conn:
            yield SqliteSession(conn)

    def apply_schema(self, schema_path: Path = SCHEMA_PATH) -> None:
        with self.connect() as conn:
            apply_schema(conn, schema_path)

    def schema_version(self) -> int | None:
        with self.connect() as conn:
            return current_version(conn)

    def get_all(self, name: str) -> Any:
        _check_name(name)
        try:
            with self.session() as session:
                return session.get_all(name)
        except (sqlite3.Error, json.JSONDecodeError) as exc:
            logger.warning("Could not load collection %s: %s", name, exc)
            return _merge_default(name, None)

    def load_all(self) -> dict[str, Any]:
        return {name: self.get_all(name) for name in COLLECTIONS}

    def replace_all(self, name: str, payload: Any) -> bool:
        """Persist ``payload`` as the whole collection; failures are logged, not raised."""
        _check_name(name)
        try:
            with self.session() as session:
                session.replace_all(name, payload)
        except (sqlite3.Error, TypeError, ValueError) as exc:
            logger.error("Could not save collection %s: %s", name, exc)
            return False
        logger.debug("Saved collection %s", name)
        return True

    def replace_many(self, collections: dict[str, Any], snapshot_reason: str | None = None) -> bool:
        """Replace several collections in one transaction, optionally snapshotting first."""
        for name in collections:
            _check_name(name)
        try:
            with self.session() as session:
                if snapshot_reason:
                    current = {name: session.get_all(name) for name in COLLECTIONS}
                    session.save_snapshot(snapshot_reason, current)
                for name, payload in collections.items():
                    session.replace_all(name, payload)
        except (sqlite3.Error, TypeError, ValueError) as exc:
            logger.error("Could not replace collections %s: %s", ", ".join(collections), exc)
            return False
        return True

    def list_snapshots(self) -> list[dict[str, Any]]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT snapshot_id, reason, created_at FROM snapshots ORDER BY created_at DESC"
            ).fetchall()
        return [dict(row) for row in rows]

    def load_snapshot(self, snapshot_id: str) -> dict[str, Any] | None:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT payload FROM snapshots WHERE snapshot_id = ?", (snapshot_id,)
            ).fetchone()
        if row is None:
            return None
        payload = json.loads(row["payload"])
        return {name: _merge_default(name, payload.get(name)) for name in COLLECTIONS}
