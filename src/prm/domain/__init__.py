from prm.domain.models import (
    Contact,
    Deal,
    Relationship,
    Task,
    Team,
    TeamMember,
    Touchpoint,
)
from prm.domain.rules import ValidationError

__all__ = [
    "Contact",
    "Deal",
    "Relationship",
    "Task",
    "Team",
    "TeamMember",
    "Touchpoint",
    "ValidationError",
]
