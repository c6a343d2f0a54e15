from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from prm.domain.dates import days_since, round_half_up
from prm.domain.models import Touchpoint
from prm.domain.rules import normalize_tier
from prm.domain.stages import RelationshipTrend
from prm.scoring.touchpoints import TouchpointStats, TrendPolicy, touchpoint_stats

BASELINE = 5
MIN_SCORE = 1
MAX_SCORE = 10

# (max days since last touchpoint, adjustment); first match wins.
RECENCY_BANDS = ((7, 3), (14, 2), (30, 1), (60, -1), (90, -2))
STALE_ADJUSTMENT = -3

TIER_MULTIPLIERS = {1: Decimal("1.2"), 2: Decimal("1.1"), 3: Decimal("1.0")}

TREND_ADJUSTMENT = {
    RelationshipTrend.IMPROVING: 1,
    RelationshipTrend.DECLINING: -1,
    RelationshipTrend.STABLE: 0,
}


def recency_adjustment(days: int) -> int:
    for limit, adjustment in RECENCY_BANDS:
        if days <= limit:
            return adjustment
    return STALE_ADJUSTMENT


def frequency_bonus(total: int) -> int:
    if total >= 10:
        return 2
    if total >= 5:
        return 1
    return 0


def relationship_score(
    *,
    total: int,
    this_week: int,
    last_touchpoint_on: date | None,
    trend: RelationshipTrend | str,
    tier: object = None,
    today: date | None = None,
) -> int:
    """Relationship health on a 1-10 scale.

    Starts from a neutral 5, adjusts for recency, volume, activity this week
    and trend, then scales by the tier multiplier before rounding half up and
    clamping.
    """
    today = today or date.today()
    try:
        trend = RelationshipTrend(trend)
    except ValueError:
        trend = RelationshipTrend.STABLE

    score = BASELINE
    score += recency_adjustment(days_since(last_touchpoint_on, today))
    score += frequency_bonus(total)
    if this_week >= 2:
        score += 1
    score += TREND_ADJUSTMENT[trend]

    scaled = round_half_up(Decimal(score) * TIER_MULTIPLIERS[normalize_tier(tier)])
    return max(MIN_SCORE, min(MAX_SCORE, scaled))


def score_from_stats(stats: TouchpointStats, tier: object = None, today: date | None = None) -> int:
    return relationship_score(
        total=stats.total,
        this_week=stats.this_week,
        last_touchpoint_on=stats.last_touchpoint_on,
        trend=stats.relationship_trend,
        tier=tier,
        today=today,
    )


def score_subject(
    touchpoints: Sequence[Touchpoint],
    tier: object = None,
    today: date | None = None,
    trend_policy: TrendPolicy | None = None,
) -> int:
    today = today or date.today()
    stats = touchpoint_stats(touchpoints, today, trend_policy)
    return score_from_stats(stats, tier, today)
