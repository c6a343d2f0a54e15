from __future__ import annotations

from dataclasses import replace
from typing import Any

from prm.domain import rules
from prm.domain.dates import utc_now
from prm.domain.models import Relationship
from prm.domain.records import to_record
from prm.domain.stages import RelationshipStrength
from prm.services.events import EventBus, emit
from prm.services.repository import ensure_saved, load_list, save_list
from prm.services.utils import new_id
from prm.store.sqlite import CollectionStore

EDITABLE_FIELDS = {"kind", "strength", "notes"}


class RelationshipError(RuntimeError):
    pass


def list_relationships(store: CollectionStore, entity_id: str | None = None) -> list[Relationship]:
    relationships = load_list(store, "relationships", Relationship)
    if entity_id:
        relationships = [rel for rel in relationships if entity_id in (rel.from_id, rel.to_id)]
    return relationships


def add_relationship(
    store: CollectionStore,
    from_id: str,
    to_id: str,
    kind: str,
    strength: str | None = None,
    notes: str | None = None,
    *,
    bus: EventBus | None = None,
) -> Relationship:
    rules.require(from_id, "from")
    rules.require(to_id, "to")
    rules.require(kind, "kind")
    rules.validate_enum(strength, [s.value for s in RelationshipStrength], "strength")
    if from_id == to_id:
        raise rules.ValidationError("A relationship needs two different entities.")

    now = utc_now()
    relationship = Relationship(
        relationship_id=new_id(),
        from_id=from_id,
        to_id=to_id,
        kind=kind,
        strength=strength,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    relationships = load_list(store, "relationships", Relationship)
    relationships.append(relationship)
    ensure_saved(save_list(store, "relationships", relationships), RelationshipError, "relationships")
    emit(bus, "relationship:added", {"id": relationship.relationship_id, "record": to_record(relationship)})
    return relationship


def update_relationship(
    store: CollectionStore,
    relationship_id: str,
    changes: dict[str, Any],
    *,
    bus: EventBus | None = None,
) -> Relationship:
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise rules.ValidationError(f"Cannot update relationship fields: {', '.join(sorted(unknown))}")
    if "strength" in changes:
        rules.validate_enum(changes["strength"], [s.value for s in RelationshipStrength], "strength")

    relationships = load_list(store, "relationships", Relationship)
    for index, relationship in enumerate(relationships):
        if relationship.relationship_id == relationship_id:
            relationships[index] = replace(relationship, **changes, updated_at=utc_now())
            ensure_saved(save_list(store, "relationships", relationships), RelationshipError, "relationships")
            emit(
                bus,
                "relationship:updated",
                {"id": relationship_id, "record": to_record(relationships[index]), "changed_fields": sorted(changes)},
            )
            return relationships[index]
    raise RelationshipError(f"Relationship not found: {relationship_id}")


def delete_relationship(store: CollectionStore, relationship_id: str, *, bus: EventBus | None = None) -> None:
    relationships = load_list(store, "relationships", Relationship)
    remaining = [rel for rel in relationships if rel.relationship_id != relationship_id]
    if len(remaining) == len(relationships):
        raise RelationshipError(f"Relationship not found: {relationship_id}")
    ensure_saved(save_list(store, "relationships", remaining), RelationshipError, "relationships")
    emit(bus, "relationship:deleted", {"id": relationship_id})


def strongest_link(store: CollectionStore, entity_id: str) -> str | None:
    strengths = {rel.strength for rel in list_relationships(store, entity_id)}
    for strength in RelationshipStrength:
        if strength.value in strengths:
            return strength.value
    return None
