"""How much pull a contact has: title seniority plus their place in the relationship graph."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from prm.domain.models import Contact, Relationship
from prm.domain.stages import InfluenceLevel, RelationshipStrength

# Title keywords are matched case-sensitively as substrings ("Director" must not hit "CTO").
TITLE_WEIGHTS = {
    "CEO": 10,
    "CTO": 9,
    "CIO": 9,
    "President": 9,
    "VP": 8,
    "Vice President": 8,
    "Director": 7,
    "Principal": 7,
    "Manager": 5,
    "Lead": 4,
    "Senior": 3,
}
CONNECTION_POINTS = 0.5
STRONG_CONNECTION_POINTS = 1.0
MAX_INFLUENCE = 10.0

# (minimum score, level); first match wins.
INFLUENCE_BANDS = (
    (7, InfluenceLevel.HIGH),
    (4, InfluenceLevel.MEDIUM),
    (1, InfluenceLevel.LOW),
)

# Earlier titles decide more: CEO 10, CTO 9 ... Director 5.
DECISION_TITLES = ("CEO", "CTO", "CIO", "President", "VP", "Director")
DEFAULT_DECISION_POWER = 3


@dataclass(frozen=True)
class InfluenceProfile:
    contact_id: str
    name: str
    title: str | None
    score: float
    level: InfluenceLevel
    decision_power: int
    network_size: int


def title_weight(title: str | None) -> int:
    return max((weight for keyword, weight in TITLE_WEIGHTS.items() if keyword in (title or "")), default=0)


def connections(contact_id: str, relationships: Sequence[Relationship]) -> list[Relationship]:
    return [rel for rel in relationships if contact_id in (rel.from_id, rel.to_id)]


def influence_score(contact: Contact, relationships: Sequence[Relationship]) -> float:
    """Title weight, plus half a point per connection and a point per strong one, capped at 10."""
    linked = connections(contact.contact_id, relationships)
    strong = sum(1 for rel in linked if rel.strength == RelationshipStrength.STRONG.value)
    score = title_weight(contact.title) + len(linked) * CONNECTION_POINTS + strong * STRONG_CONNECTION_POINTS
    return min(score, MAX_INFLUENCE)


def influence_level(score: float) -> InfluenceLevel:
    for minimum, level in INFLUENCE_BANDS:
        if score >= minimum:
            return level
    return InfluenceLevel.UNKNOWN


def decision_power(title: str | None) -> int:
    for index, keyword in enumerate(DECISION_TITLES):
        if keyword in (title or ""):
            return 10 - index
    return DEFAULT_DECISION_POWER


def influence_profiles(
    contacts: Sequence[Contact],
    relationships: Sequence[Relationship],
) -> list[InfluenceProfile]:
    """Profiles for every contact, most influential first; ties keep input order."""
    profiles = []
    for contact in contacts:
        score = influence_score(contact, relationships)
        profiles.append(
            InfluenceProfile(
                contact_id=contact.contact_id,
                name=contact.name,
                title=contact.title,
                score=score,
                level=influence_level(score),
                decision_power=decision_power(contact.title),
                network_size=len(connections(contact.contact_id, relationships)),
            )
        )
    return sorted(profiles, key=lambda profile: profile.score, reverse=True)
