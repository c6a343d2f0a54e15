from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date

from prm.domain.dates import days_until, round_half_up
from prm.domain.models import Deal

VALUE_CAP = 1_000_000
VALUE_WEIGHT = 40
PROBABILITY_WEIGHT = 30

# (max days to close, points); first match wins.
URGENCY_BANDS = ((0, 20), (7, 18), (30, 15), (90, 10))
DISTANT_URGENCY = 5


def urgency_points(days_to_close: int | None) -> int:
    if days_to_close is None:
        return DISTANT_URGENCY
    for limit, points in URGENCY_BANDS:
        if days_to_close <= limit:
            return points
    return DISTANT_URGENCY


def priority_score(
    *,
    value: float,
    probability: float,
    days_to_close: int | None,
    relationship_score: int = 0,
) -> int:
    value_part = min(VALUE_WEIGHT, max(0.0, value) / VALUE_CAP * VALUE_WEIGHT)
    probability_part = max(0, min(100, probability)) / 100 * PROBABILITY_WEIGHT
    relationship_part = max(0, min(10, relationship_score)) / 10 * 10
    total = value_part + probability_part + urgency_points(days_to_close) + relationship_part
    return max(0, min(100, round_half_up(total)))


def deal_priority(deal: Deal, relationship_score: int = 0, today: date | None = None) -> int:
    today = today or date.today()
    return priority_score(
        value=deal.value,
        probability=deal.probability,
        days_to_close=days_until(deal.close_date, today),
        relationship_score=relationship_score,
    )


def rank_deals(
    deals: Sequence[Deal],
    relationship_for: Callable[[Deal], int],
    today: date | None = None,
) -> list[tuple[Deal, int]]:
    """Deals with their priority, highest first; equal scores keep input order."""
    today = today or date.today()
    scored = [(deal, deal_priority(deal, relationship_for(deal), today)) for deal in deals]
    return sorted(scored, key=lambda item: item[1], reverse=True)
