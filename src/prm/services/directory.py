"""Teams, team members and contacts."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from prm.domain import rules
from prm.domain.dates import utc_now
from prm.domain.models import Contact, Team, TeamMember
from prm.domain.records import from_record, to_record
from prm.domain.stages import MemberRole
from prm.services.events import EventBus, emit
from prm.services.repository import (
    ensure_saved,
    flatten,
    group_key,
    grouped_payload,
    load_grouped,
    save_grouped,
)
from prm.services.utils import UNKNOWN_CONTACT, new_id
from prm.store.sqlite import CollectionStore

logger = logging.getLogger(__name__)

CONTACT_FIELDS = {"name", "company", "title", "tier", "email", "phone", "team_id", "notes"}
MEMBER_FIELDS = {"name", "role", "tier", "geo", "email"}


class DirectoryError(RuntimeError):
    pass


# Teams


def list_teams(store: CollectionStore) -> list[Team]:
    return [from_record(Team, record) for record in store.get_all("teams").values()]


def get_team(store: CollectionStore, team_id: str) -> Team | None:
    record = store.get_all("teams").get(team_id)
    return from_record(Team, record) if record else None


def add_team(
    store: CollectionStore,
    name: str,
    region: str | None = None,
    color: str | None = None,
    team_id: str | None = None,
    *,
    bus: EventBus | None = None,
) -> Team:
    rules.require(name, "name")
    now = utc_now()
    teams = store.get_all("teams")
    team = Team(
        team_id=team_id or new_id(),
        name=name,
        region=region,
        color=color,
        created_at=now,
        updated_at=now,
    )
    teams[team.team_id] = to_record(team)
    ensure_saved(store.replace_all("teams", teams), DirectoryError, "teams")
    emit(bus, "team:added", {"id": team.team_id, "record": to_record(team)})
    return team


def delete_team(store: CollectionStore, team_id: str, *, bus: EventBus | None = None) -> None:
    """Remove a team and its members; its contacts become unassigned."""
    teams = store.get_all("teams")
    if team_id not in teams:
        raise DirectoryError(f"Team not found: {team_id}")
    del teams[team_id]

    members = load_grouped(store, "team_members", TeamMember)
    members.pop(team_id, None)

    contacts = load_grouped(store, "contacts", Contact)
    orphaned = [replace(contact, team_id=None) for contact in contacts.pop(team_id, [])]
    if orphaned:
        contacts.setdefault(group_key(None), []).extend(orphaned)

    saved = store.replace_many(
        {
            "teams": teams,
            "team_members": grouped_payload(members),
            "contacts": grouped_payload(contacts),
        }
    )
    ensure_saved(saved, DirectoryError, "teams, team members and contacts")
    emit(bus, "team:deleted", {"id": team_id})


# Team members


def list_members(store: CollectionStore, team_id: str | None = None) -> list[TeamMember]:
    groups = load_grouped(store, "team_members", TeamMember)
    if team_id is not None:
        return list(groups.get(team_id, []))
    return flatten(groups)


def find_member(store: CollectionStore, member_id: str) -> TeamMember | None:
    for member in list_members(store):
        if member.member_id == member_id:
            return member
    return None


def add_member(
    store: CollectionStore,
    team_id: str,
    name: str,
    role: str,
    tier: int | None = None,
    geo: str | None = None,
    email: str | None = None,
    *,
    bus: EventBus | None = None,
) -> TeamMember:
    rules.require(name, "name")
    rules.require(role, "role")
    rules.validate_enum(role, [r.value for r in MemberRole], "role")
    if get_team(store, team_id) is None:
        raise DirectoryError(f"Team not found: {team_id}")

    now = utc_now()
    member = TeamMember(
        member_id=new_id(),
        team_id=team_id,
        name=name,
        role=role,
        tier=rules.validate_tier(tier),
        geo=geo,
        email=email,
        created_at=now,
        updated_at=now,
    )
    groups = load_grouped(store, "team_members", TeamMember)
    groups.setdefault(team_id, []).append(member)
    ensure_saved(save_grouped(store, "team_members", groups), DirectoryError, "team members")
    emit(bus, "team-member:added", {"id": member.member_id, "record": to_record(member)})
    return member


def update_member(
    store: CollectionStore,
    member_id: str,
    changes: dict[str, Any],
    *,
    bus: EventBus | None = None,
) -> TeamMember:
    unknown = set(changes) - MEMBER_FIELDS - {"last_touchpoint_on", "touchpoint_count"}
    if unknown:
        raise rules.ValidationError(f"Cannot update member fields: {', '.join(sorted(unknown))}")
    if "role" in changes:
        rules.validate_enum(changes["role"], [r.value for r in MemberRole], "role")
    if "tier" in changes:
        changes = {**changes, "tier": rules.validate_tier(changes["tier"])}

    groups = load_grouped(store, "team_members", TeamMember)
    for members in groups.values():
        for index, member in enumerate(members):
            if member.member_id == member_id:
                members[index] = replace(member, **changes, updated_at=utc_now())
                ensure_saved(save_grouped(store, "team_members", groups), DirectoryError, "team members")
                emit(
                    bus,
                    "team-member:updated",
                    {"id": member_id, "record": to_record(members[index]), "changed_fields": sorted(changes)},
                )
                return members[index]
    raise DirectoryError(f"Team member not found: {member_id}")


def remove_member(store: CollectionStore, member_id: str, *, bus: EventBus | None = None) -> None:
    groups = load_grouped(store, "team_members", TeamMember)
    for team_id, members in groups.items():
        remaining = [member for member in members if member.member_id != member_id]
        if len(remaining) != len(members):
            groups[team_id] = remaining
            ensure_saved(save_grouped(store, "team_members", groups), DirectoryError, "team members")
            emit(bus, "team-member:removed", {"id": member_id})
            return
    raise DirectoryError(f"Team member not found: {member_id}")


# Contacts


def list_contacts(store: CollectionStore, team_id: str | None = None) -> list[Contact]:
    groups = load_grouped(store, "contacts", Contact)
    if team_id is not None:
        return list(groups.get(team_id, []))
    return flatten(groups)


def get_contact(store: CollectionStore, contact_id: str | None) -> Contact | None:
    if not contact_id:
        return None
    for contact in list_contacts(store):
        if contact.contact_id == contact_id:
            return contact
    return None


def contact_name(store: CollectionStore, contact_id: str | None) -> str:
    contact = get_contact(store, contact_id)
    return contact.name if contact else UNKNOWN_CONTACT


def add_contact(
    store: CollectionStore,
    name: str,
    company: str | None = None,
    title: str | None = None,
    tier: int | None = None,
    email: str | None = None,
    phone: str | None = None,
    team_id: str | None = None,
    notes: str | None = None,
    contact_id: str | None = None,
    *,
    bus: EventBus | None = None,
) -> Contact:
    rules.require(name, "name")
    if team_id is not None and get_team(store, team_id) is None:
        raise DirectoryError(f"Team not found: {team_id}")

    now = utc_now()
    contact = Contact(
        contact_id=contact_id or new_id(),
        name=name,
        company=company,
        title=title,
        tier=rules.validate_tier(tier),
        email=email,
        phone=phone,
        team_id=team_id,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    groups = load_grouped(store, "contacts", Contact)
    if any(c.contact_id == contact.contact_id for c in flatten(groups)):
        raise DirectoryError(f"Contact already exists: {contact.contact_id}")
    groups.setdefault(group_key(team_id), []).append(contact)
    ensure_saved(save_grouped(store, "contacts", groups), DirectoryError, "contacts")
    logger.debug("Added contact %s", contact.contact_id)
    emit(bus, "contact:added", {"id": contact.contact_id, "record": to_record(contact)})
    return contact


def update_contact(
    store: CollectionStore,
    contact_id: str,
    changes: dict[str, Any],
    *,
    bus: EventBus | None = None,
) -> Contact:
    unknown = set(changes) - CONTACT_FIELDS - {"last_touchpoint_on", "touchpoint_count"}
    if unknown:
        raise rules.ValidationError(f"Cannot update contact fields: {', '.join(sorted(unknown))}")
    if "tier" in changes:
        changes = {**changes, "tier": rules.validate_tier(changes["tier"])}
    if changes.get("team_id") and get_team(store, changes["team_id"]) is None:
        raise DirectoryError(f"Team not found: {changes['team_id']}")

    groups = load_grouped(store, "contacts", Contact)
    for key, contacts in groups.items():
        for index, contact in enumerate(contacts):
            if contact.contact_id != contact_id:
                continue
            updated = replace(contact, **changes, updated_at=utc_now())
            if group_key(updated.team_id) != key:
                del contacts[index]
                groups.setdefault(group_key(updated.team_id), []).append(updated)
            else:
                contacts[index] = updated
            ensure_saved(save_grouped(store, "contacts", groups), DirectoryError, "contacts")
            emit(
                bus,
                "contact:updated",
                {"id": contact_id, "record": to_record(updated), "changed_fields": sorted(changes)},
            )
            return updated
    raise DirectoryError(f"Contact not found: {contact_id}")


def delete_contact(store: CollectionStore, contact_id: str, *, bus: EventBus | None = None) -> None:
    groups = load_grouped(store, "contacts", Contact)
    for key, contacts in groups.items():
        remaining = [contact for contact in contacts if contact.contact_id != contact_id]
        if len(remaining) != len(contacts):
            groups[key] = remaining
            ensure_saved(save_grouped(store, "contacts", groups), DirectoryError, "contacts")
            emit(bus, "contact:deleted", {"id": contact_id})
            return
    raise DirectoryError(f"Contact not found: {contact_id}")
