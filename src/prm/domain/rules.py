from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from prm.domain.dates import round_half_up

DEFAULT_TIER = 3
VALID_TIERS = (1, 2, 3)


class ValidationError(ValueError):
    pass


def require(value: str | None, field: str) -> None:
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field} is required.")


def validate_enum(value: str | None, allowed: Iterable[str], field: str) -> None:
    if value is None:
        return
    allowed = list(allowed)
    if value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(allowed))}")


def validate_tier(value: int | None, field: str = "tier") -> int:
    if value is None:
        return DEFAULT_TIER
    if value not in VALID_TIERS:
        raise ValidationError(f"{field} must be 1, 2 or 3.")
    return value


def normalize_tier(value: object) -> int:
    """Tier lookup used by scoring: anything outside 1-3 falls back to tier 3."""
    if isinstance(value, bool):
        return DEFAULT_TIER
    if isinstance(value, str):
        # Older exports stored tiers as "tier1".."tier3".
        value = value.strip().lower().removeprefix("tier")
        if not value.isdigit():
            return DEFAULT_TIER
        value = int(value)
    if isinstance(value, int) and value in VALID_TIERS:
        return value
    return DEFAULT_TIER


def validate_value(value: float | None, field: str = "value") -> float:
    if value is None:
        return 0.0
    if value < 0:
        raise ValidationError(f"{field} must be non-negative.")
    return float(value)


def clamp_probability(value: float | None) -> int:
    if value is None:
        return 0
    return max(0, min(100, round_half_up(value)))


def parse_date(value: str | None, field: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be YYYY-MM-DD.") from exc
