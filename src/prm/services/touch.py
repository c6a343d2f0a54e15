from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Protocol

from prm.domain import rules
from prm.domain.dates import utc_now
from prm.domain.models import Touchpoint
from prm.domain.records import to_record
from prm.domain.stages import TouchpointOutcome, TouchpointType
from prm.scoring.touchpoints import newest_first, score_impact
from prm.services import directory
from prm.services.events import EventBus, emit
from prm.services.repository import ensure_saved, load_list, save_list
from prm.services.utils import new_id, parse_tags
from prm.store.sqlite import CollectionStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "occurred_on",
    "type",
    "outcome",
    "notes",
    "is_important",
    "score_impact",
    "duration_minutes",
    "tags",
    "follow_up_required",
    "follow_up_on",
}
IMPACT_INPUTS = {"type", "outcome", "duration_minutes", "is_important"}


class TouchError(RuntimeError):
    pass


class ActivitySync(Protocol):
    def refresh(self, store: CollectionStore, touchpoint: Touchpoint) -> None: ...


class SubjectActivitySync:
    """Keeps last-touchpoint date and touchpoint count on contacts and team members current."""

    def refresh(self, store: CollectionStore, touchpoint: Touchpoint) -> None:
        if touchpoint.contact_id and directory.get_contact(store, touchpoint.contact_id):
            history = list_touchpoints(store, contact_id=touchpoint.contact_id)
            directory.update_contact(store, touchpoint.contact_id, _activity(history))
        if touchpoint.team_member_id and directory.find_member(store, touchpoint.team_member_id):
            history = list_touchpoints(store, team_member_id=touchpoint.team_member_id)
            directory.update_member(store, touchpoint.team_member_id, _activity(history))


def _activity(history: list[Touchpoint]) -> dict[str, Any]:
    return {
        "last_touchpoint_on": history[0].occurred_on if history else None,
        "touchpoint_count": len(history),
    }


@dataclass(frozen=True)
class TouchpointFilter:
    contact_id: str | None = None
    team_member_id: str | None = None
    team_id: str | None = None
    deal_id: str | None = None
    type: str | None = None
    outcome: str | None = None
    start: date | None = None
    end: date | None = None
    tags: tuple[str, ...] = ()
    has_follow_up: bool | None = None

    def matches(self, tp: Touchpoint) -> bool:
        if self.contact_id and tp.contact_id != self.contact_id:
            return False
        if self.team_member_id and tp.team_member_id != self.team_member_id:
            return False
        if self.team_id and tp.team_id != self.team_id:
            return False
        if self.deal_id and tp.deal_id != self.deal_id:
            return False
        if self.type and tp.type != self.type:
            return False
        if self.outcome and tp.outcome != self.outcome:
            return False
        if self.start and tp.occurred_on < self.start:
            return False
        if self.end and tp.occurred_on > self.end:
            return False
        if self.tags and not any(tag in tp.tags for tag in self.tags):
            return False
        if self.has_follow_up is not None and tp.follow_up_required != self.has_follow_up:
            return False
        return True


def list_touchpoints(store: CollectionStore, **filters: Any) -> list[Touchpoint]:
    """Touchpoints matching ``filters`` (see TouchpointFilter), newest first."""
    if "tags" in filters:
        filters["tags"] = tuple(parse_tags(filters["tags"]))
    selector = TouchpointFilter(**filters)
    return newest_first([tp for tp in load_list(store, "touchpoints", Touchpoint) if selector.matches(tp)])


def get_touchpoint(store: CollectionStore, touchpoint_id: str) -> Touchpoint | None:
    for tp in load_list(store, "touchpoints", Touchpoint):
        if tp.touchpoint_id == touchpoint_id:
            return tp
    return None


def log_touchpoint(
    store: CollectionStore,
    *,
    type: str = TouchpointType.OTHER.value,
    outcome: str = TouchpointOutcome.NEUTRAL.value,
    occurred_on: date | None = None,
    contact_id: str | None = None,
    deal_id: str | None = None,
    team_member_id: str | None = None,
    team_id: str | None = None,
    notes: str | None = None,
    is_important: bool = False,
    impact: int | None = None,
    duration_minutes: int | None = None,
    tags: str | list[str] | None = None,
    follow_up_required: bool = False,
    follow_up_on: date | None = None,
    bus: EventBus | None = None,
    sync: ActivitySync | None = None,
) -> Touchpoint:
    rules.validate_enum(type, [t.value for t in TouchpointType], "type")
    rules.validate_enum(outcome, [o.value for o in TouchpointOutcome], "outcome")
    if not (contact_id or deal_id or team_member_id):
        raise TouchError("A touchpoint needs a contact, deal or team member.")
    if duration_minutes is not None and duration_minutes < 0:
        raise rules.ValidationError("duration must be non-negative.")

    if team_member_id and team_id is None:
        member = directory.find_member(store, team_member_id)
        team_id = member.team_id if member else None

    now = utc_now()
    touchpoint = Touchpoint(
        touchpoint_id=new_id(),
        occurred_on=occurred_on or now.date(),
        type=type,
        outcome=outcome,
        contact_id=contact_id,
        deal_id=deal_id,
        team_member_id=team_member_id,
        team_id=team_id,
        notes=notes or "",
        is_important=is_important,
        score_impact=impact
        if impact is not None
        else score_impact(type, outcome, duration_minutes, is_important),
        duration_minutes=duration_minutes,
        tags=parse_tags(tags),
        follow_up_required=follow_up_required or outcome == TouchpointOutcome.NEEDS_FOLLOW_UP.value,
        follow_up_on=follow_up_on,
        created_at=now,
        updated_at=now,
    )
    touchpoints = load_list(store, "touchpoints", Touchpoint)
    touchpoints.append(touchpoint)
    ensure_saved(save_list(store, "touchpoints", touchpoints), TouchError, "touchpoints")
    logger.debug("Logged %s touchpoint %s", type, touchpoint.touchpoint_id)

    if sync is not None:
        sync.refresh(store, touchpoint)
    emit(bus, "touchpoint:logged", {"id": touchpoint.touchpoint_id, "record": to_record(touchpoint)})
    return touchpoint


def update_touchpoint(
    store: CollectionStore,
    touchpoint_id: str,
    changes: dict[str, Any],
    *,
    bus: EventBus | None = None,
    sync: ActivitySync | None = None,
) -> Touchpoint:
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise rules.ValidationError(f"Cannot update touchpoint fields: {', '.join(sorted(unknown))}")
    changes = dict(changes)
    if "type" in changes:
        rules.validate_enum(changes["type"], [t.value for t in TouchpointType], "type")
    if "outcome" in changes:
        rules.validate_enum(changes["outcome"], [o.value for o in TouchpointOutcome], "outcome")
    if "tags" in changes:
        changes["tags"] = parse_tags(changes["tags"])

    touchpoints = load_list(store, "touchpoints", Touchpoint)
    for index, tp in enumerate(touchpoints):
        if tp.touchpoint_id != touchpoint_id:
            continue
        updated = replace(tp, **changes, updated_at=utc_now())
        if "score_impact" not in changes and IMPACT_INPUTS & set(changes):
            updated = replace(
                updated,
                score_impact=score_impact(
                    updated.type, updated.outcome, updated.duration_minutes, updated.is_important
                ),
            )
        if changes.get("outcome") == TouchpointOutcome.NEEDS_FOLLOW_UP.value:
            updated = replace(updated, follow_up_required=True)
        touchpoints[index] = updated
        ensure_saved(save_list(store, "touchpoints", touchpoints), TouchError, "touchpoints")
        if sync is not None:
            sync.refresh(store, updated)
        emit(
            bus,
            "touchpoint:updated",
            {"id": touchpoint_id, "record": to_record(updated), "changed_fields": sorted(changes)},
        )
        return updated
    raise TouchError(f"Touchpoint not found: {touchpoint_id}")


def delete_touchpoint(
    store: CollectionStore,
    touchpoint_id: str,
    *,
    bus: EventBus | None = None,
    sync: ActivitySync | None = None,
) -> Touchpoint:
    touchpoints = load_list(store, "touchpoints", Touchpoint)
    for index, tp in enumerate(touchpoints):
        if tp.touchpoint_id == touchpoint_id:
            del touchpoints[index]
            ensure_saved(save_list(store, "touchpoints", touchpoints), TouchError, "touchpoints")
            if sync is not None:
                sync.refresh(store, tp)
            emit(bus, "touchpoint:deleted", {"id": touchpoint_id, "record": to_record(tp)})
            return tp
    raise TouchError(f"Touchpoint not found: {touchpoint_id}")


def complete_follow_up(
    store: CollectionStore,
    touchpoint_id: str,
    *,
    bus: EventBus | None = None,
) -> Touchpoint:
    touchpoints = load_list(store, "touchpoints", Touchpoint)
    for index, tp in enumerate(touchpoints):
        if tp.touchpoint_id == touchpoint_id:
            if not tp.follow_up_required:
                raise TouchError("Touchpoint has no follow-up to complete.")
            touchpoints[index] = replace(tp, follow_up_completed=True, updated_at=utc_now())
            ensure_saved(save_list(store, "touchpoints", touchpoints), TouchError, "touchpoints")
            emit(
                bus,
                "touchpoint:updated",
                {"id": touchpoint_id, "record": to_record(touchpoints[index]), "changed_fields": ["follow_up_completed"]},
            )
            return touchpoints[index]
    raise TouchError(f"Touchpoint not found: {touchpoint_id}")


@dataclass(frozen=True)
class FollowUp:
    touchpoint: Touchpoint
    due_on: date | None
    overdue: bool


def pending_follow_ups(store: CollectionStore, today: date | None = None) -> list[FollowUp]:
    """Open follow-ups, soonest first; follow-ups without a date sort last."""
    today = today or date.today()
    pending = [
        FollowUp(
            touchpoint=tp,
            due_on=tp.follow_up_on,
            overdue=tp.follow_up_on is not None and tp.follow_up_on < today,
        )
        for tp in load_list(store, "touchpoints", Touchpoint)
        if tp.follow_up_required and not tp.follow_up_completed
    ]
    return sorted(pending, key=lambda item: (item.due_on is None, item.due_on or date.max))
