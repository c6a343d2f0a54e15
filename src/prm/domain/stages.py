from __future__ import annotations

from enum import Enum


class DealStage(str, Enum):
    PREQUALIFIED = "prequalified"
    QUALIFIED = "qualified"
    PROPOSAL_DEVELOPMENT = "proposal-development"
    PROPOSAL_DELIVERED = "proposal-delivered"
    LEGAL = "legal"
    OUT_FOR_SIGNATURE = "out-for-signature"
    SIGNED = "signed"
    DEAL_WON = "deal-won"
    DEAL_LOST = "deal-lost"

    @property
    def label(self) -> str:
        return STAGE_LABELS[self]

    @property
    def default_probability(self) -> int:
        return STAGE_PROBABILITIES[self]

    @property
    def is_closed(self) -> bool:
        return self in (DealStage.DEAL_WON, DealStage.DEAL_LOST)


STAGE_PROBABILITIES = {
    DealStage.PREQUALIFIED: 10,
    DealStage.QUALIFIED: 25,
    DealStage.PROPOSAL_DEVELOPMENT: 40,
    DealStage.PROPOSAL_DELIVERED: 60,
    DealStage.LEGAL: 75,
    DealStage.OUT_FOR_SIGNATURE: 90,
    DealStage.SIGNED: 95,
    DealStage.DEAL_WON: 100,
    DealStage.DEAL_LOST: 0,
}

STAGE_LABELS = {
    DealStage.PREQUALIFIED: "Prequalified",
    DealStage.QUALIFIED: "Qualified",
    DealStage.PROPOSAL_DEVELOPMENT: "Proposal Development",
    DealStage.PROPOSAL_DELIVERED: "Proposal Delivered",
    DealStage.LEGAL: "Legal Review",
    DealStage.OUT_FOR_SIGNATURE: "Out for Signature",
    DealStage.SIGNED: "Signed",
    DealStage.DEAL_WON: "Deal Won",
    DealStage.DEAL_LOST: "Deal Lost",
}


class TouchpointType(str, Enum):
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    TEXT = "text"
    EVENT = "event"
    OTHER = "other"


class TouchpointOutcome(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEEDS_FOLLOW_UP = "needs-follow-up"
    NEGATIVE = "negative"


class ReferralType(str, Enum):
    DIRECT = "direct"
    WARM_INTRO = "warm_intro"
    EVENT = "event"
    COLD = "cold"


class MemberRole(str, Enum):
    LOL = "LoL"
    DM = "DM"
    PSM = "PSM"
    AM = "AM"
    SA = "SA"


class RelationshipTrend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class RelationshipStrength(str, Enum):
    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"


class InfluenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"


class TaskStatus(str, Enum):
    OPEN = "open"
    DONE = "done"
    CANCELED = "canceled"
