from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from prm.domain.rules import DEFAULT_TIER


@dataclass(frozen=True)
class Team:
    team_id: str
    name: str
    region: str | None = None
    color: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class TeamMember:
    member_id: str
    team_id: str
    name: str
    role: str
    tier: int = DEFAULT_TIER
    geo: str | None = None
    email: str | None = None
    last_touchpoint_on: date | None = None
    touchpoint_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Contact:
    contact_id: str
    name: str
    company: str | None = None
    title: str | None = None
    tier: int = DEFAULT_TIER
    email: str | None = None
    phone: str | None = None
    team_id: str | None = None
    notes: str | None = None
    last_touchpoint_on: date | None = None
    touchpoint_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Touchpoint:
    touchpoint_id: str
    occurred_on: date
    type: str
    outcome: str
    contact_id: str | None = None
    deal_id: str | None = None
    team_member_id: str | None = None
    team_id: str | None = None
    notes: str = ""
    is_important: bool = False
    score_impact: int | None = None
    duration_minutes: int | None = None
    tags: list[str] = field(default_factory=list)
    follow_up_required: bool = False
    follow_up_on: date | None = None
    follow_up_completed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Deal:
    deal_id: str
    name: str
    value: float
    stage: str
    probability: int
    close_date: date | None = None
    contact_id: str | None = None
    description: str | None = None
    referral_source: str | None = None
    referral_team: str | None = None
    referral_type: str | None = None
    referral_notes: str | None = None
    referral_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Relationship:
    relationship_id: str
    from_id: str
    to_id: str
    kind: str
    strength: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Task:
    task_id: str
    title: str
    status: str
    due_on: date | None = None
    details: str | None = None
    contact_id: str | None = None
    deal_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
