"""JSON snapshot export and validated import."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from prm.domain.dates import utc_now
from prm.domain.models import Contact, Deal, Relationship, Task, Team, TeamMember, Touchpoint
from prm.domain.records import from_record
from prm.domain import rules
from prm.domain.rules import ValidationError
from prm.services.events import EventBus, emit
from prm.services.repository import group_key
from prm.store.sqlite import CollectionStore

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"
APP_NAME = "Partner Tracker"

REQUIRED_FIELDS = ("version", "export_date", "app_name", "data")
REQUIRED_DATA_FIELDS = ("contacts", "deals", "touchpoints")

LIST_TYPES: dict[str, type] = {
    "teams": Team,
    "contacts": Contact,
    "team_members": TeamMember,
    "deals": Deal,
    "touchpoints": Touchpoint,
    "tasks": Task,
    "relationships": Relationship,
}


class BackupError(RuntimeError):
    pass


@dataclass(frozen=True)
class ImportSummary:
    counts: dict[str, int]
    snapshot_reason: str


def build_snapshot(store: CollectionStore, now: datetime | None = None) -> dict[str, Any]:
    now = now or utc_now()
    collections = store.load_all()
    data = {
        "teams": list(collections["teams"].values()),
        "contacts": _flatten(collections["contacts"]),
        "team_members": _flatten(collections["team_members"]),
        "deals": collections["deals"],
        "touchpoints": collections["touchpoints"],
        "tasks": collections["tasks"],
        "relationships": collections["relationships"],
        "settings": collections["settings"],
    }
    return {
        "version": FORMAT_VERSION,
        "export_date": now.isoformat(),
        "app_name": APP_NAME,
        "data": data,
        "stats": {f"total_{name}": len(data[name]) for name in LIST_TYPES},
    }


def write_snapshot(store: CollectionStore, out_path: Path) -> dict[str, Any]:
    snapshot = build_snapshot(store)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(snapshot, indent=2) + "\n", encoding="utf-8")
    return snapshot


def read_snapshot(path: Path) -> dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise BackupError(f"Backup file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise BackupError(f"Backup file is not valid JSON: {exc}") from exc


def validate_snapshot(snapshot: Any) -> dict[str, list[dict[str, Any]]]:
    """Check a backup document and return its record lists, normalized.

    Tiers, deal values and probabilities are brought into range the same way
    the add services do; anything that cannot be decoded raises BackupError.
    """
    if not isinstance(snapshot, dict):
        raise BackupError("Backup must be a JSON object.")
    for field in REQUIRED_FIELDS:
        if field not in snapshot:
            raise BackupError(f"Missing required field: {field}")
    data = snapshot["data"]
    if not isinstance(data, dict):
        raise BackupError("Invalid data format for: data")
    for field in REQUIRED_DATA_FIELDS:
        if field not in data:
            raise BackupError(f"Missing data field: {field}")
    if snapshot["app_name"] != APP_NAME:
        raise BackupError(f"This backup file is not from {APP_NAME}")

    cleaned: dict[str, list[dict[str, Any]]] = {}
    for name, cls in LIST_TYPES.items():
        records = data.get(name, [])
        if not isinstance(records, list):
            raise BackupError(f"Invalid data format for: {name}")
        cleaned[name] = []
        for position, record in enumerate(records, start=1):
            try:
                cleaned[name].append(_clean_record(cls, record))
            except ValidationError as exc:
                raise BackupError(f"Invalid {name} record #{position}: {exc}") from exc
    if not isinstance(data.get("settings", {}), dict):
        raise BackupError("Invalid data format for: settings")
    return cleaned


def import_snapshot(
    store: CollectionStore,
    snapshot: Any,
    *,
    bus: EventBus | None = None,
) -> ImportSummary:
    """Replace every collection with the snapshot's data.

    The current state is saved as a store snapshot first; nothing changes if
    validation or the write fails.
    """
    data = validate_snapshot(snapshot)
    collections = {
        "teams": {record["team_id"]: record for record in data["teams"]},
        "contacts": _group(data["contacts"]),
        "team_members": _group(data["team_members"]),
        "deals": data["deals"],
        "touchpoints": data["touchpoints"],
        "tasks": data["tasks"],
        "relationships": data["relationships"],
        "settings": snapshot["data"].get("settings", {}),
    }
    reason = f"pre-import {snapshot['export_date']}"
    if not store.replace_many(collections, snapshot_reason=reason):
        raise BackupError("Import failed; existing data was left unchanged.")

    counts = {name: len(records) for name, records in data.items()}
    logger.info("Imported backup from %s", snapshot["export_date"])
    emit(bus, "data:imported", {"id": snapshot["export_date"], "changed_fields": sorted(collections)})
    return ImportSummary(counts=counts, snapshot_reason=reason)


def restore_store_snapshot(
    store: CollectionStore,
    snapshot_id: str,
    *,
    bus: EventBus | None = None,
) -> None:
    collections = store.load_snapshot(snapshot_id)
    if collections is None:
        raise BackupError(f"Snapshot not found: {snapshot_id}")
    if not store.replace_many(collections, snapshot_reason=f"pre-restore {snapshot_id}"):
        raise BackupError("Restore failed; existing data was left unchanged.")
    emit(bus, "data:restored", {"id": snapshot_id})


def _clean_record(cls: type, record: Any) -> dict[str, Any]:
    if isinstance(record, dict) and isinstance(record.get("tier"), str):
        record = {**record, "tier": _legacy_tier(record["tier"])}
    item = from_record(cls, record)

    changes: dict[str, Any] = {}
    if cls in (Contact, TeamMember):
        changes["tier"] = rules.normalize_tier(item.tier)
    elif cls is Deal:
        changes["value"] = rules.validate_value(item.value)
        changes["probability"] = rules.clamp_probability(item.probability)
    elif cls is Touchpoint:
        if not (item.contact_id or item.deal_id or item.team_member_id):
            raise ValidationError("no contact, deal or team member.")
        if item.duration_minutes is not None and item.duration_minutes < 0:
            raise ValidationError("duration must be non-negative.")
    return {**record, **changes}


def _legacy_tier(value: str) -> int | str:
    # Older exports stored tiers as "tier1".."tier3".
    digits = value.strip().lower().removeprefix("tier")
    return int(digits) if digits.isdigit() else value


def _flatten(groups: dict[str, list[dict[str, Any]]]) -> list[dict[str, Any]]:
    return [record for records in groups.values() for record in records]


def _group(records: list[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    groups: dict[str, list[dict[str, Any]]] = {}
    for record in records:
        groups.setdefault(group_key(record.get("team_id")), []).append(record)
    return groups
