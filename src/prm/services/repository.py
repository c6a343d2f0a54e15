"""Typed access to the store's JSON collections."""

from __future__ import annotations

from typing import Any, TypeVar

from prm.domain.records import from_record, to_record
from prm.store.sqlite import CollectionStore

T = TypeVar("T")

UNASSIGNED_TEAM = "unassigned"


def load_list(store: CollectionStore, name: str, cls: type[T]) -> list[T]:
    return [from_record(cls, item) for item in store.get_all(name)]


def save_list(store: CollectionStore, name: str, items: list[Any]) -> bool:
    return store.replace_all(name, [to_record(item) for item in items])


def load_grouped(store: CollectionStore, name: str, cls: type[T]) -> dict[str, list[T]]:
    return {
        group: [from_record(cls, item) for item in items]
        for group, items in store.get_all(name).items()
    }


def grouped_payload(groups: dict[str, list[Any]]) -> dict[str, list[dict[str, Any]]]:
    return {group: [to_record(item) for item in items] for group, items in groups.items() if items}


def save_grouped(store: CollectionStore, name: str, groups: dict[str, list[Any]]) -> bool:
    return store.replace_all(name, grouped_payload(groups))


def ensure_saved(saved: bool, error: type[Exception], name: str) -> None:
    """Raise ``error`` when a store write reported failure; the collection is unchanged."""
    if not saved:
        raise error(f"Could not save {name}; the change was not applied.")


def flatten(groups: dict[str, list[T]]) -> list[T]:
    return [item for items in groups.values() for item in items]


def group_key(team_id: str | None) -> str:
    return team_id or UNASSIGNED_TEAM
