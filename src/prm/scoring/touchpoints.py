"""Touchpoint history statistics feeding the relationship score."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Protocol

from prm.domain.dates import round_half_up, week_start
from prm.domain.models import Touchpoint
from prm.domain.stages import RelationshipTrend, TouchpointOutcome, TouchpointType

TYPE_IMPACT = {
    TouchpointType.CALL.value: 3,
    TouchpointType.MEETING.value: 4,
    TouchpointType.EMAIL.value: 2,
    TouchpointType.TEXT.value: 1,
    TouchpointType.EVENT.value: 3,
    TouchpointType.OTHER.value: 1,
}

OUTCOME_IMPACT = {
    TouchpointOutcome.POSITIVE.value: 2,
    TouchpointOutcome.NEUTRAL.value: 0,
    TouchpointOutcome.NEEDS_FOLLOW_UP.value: 1,
    TouchpointOutcome.NEGATIVE.value: -2,
}

MAX_IMPACT = 5
LONG_TOUCHPOINT_MINUTES = 30


def score_impact(
    type_: str,
    outcome: str,
    duration_minutes: int | None = None,
    is_important: bool = False,
) -> int:
    impact = TYPE_IMPACT.get(type_, 1) + OUTCOME_IMPACT.get(outcome, 0)
    if duration_minutes and duration_minutes >= LONG_TOUCHPOINT_MINUTES:
        impact += 1
    if is_important:
        impact += 1
    return max(-MAX_IMPACT, min(MAX_IMPACT, impact))


def impact_of(touchpoint: Touchpoint) -> int:
    if touchpoint.score_impact is not None:
        return touchpoint.score_impact
    return score_impact(
        touchpoint.type,
        touchpoint.outcome,
        touchpoint.duration_minutes,
        touchpoint.is_important,
    )


def newest_first(touchpoints: Sequence[Touchpoint]) -> list[Touchpoint]:
    return sorted(touchpoints, key=lambda tp: tp.occurred_on, reverse=True)


class TrendPolicy(Protocol):
    def trend(self, touchpoints: Sequence[Touchpoint], today: date) -> RelationshipTrend: ...


@dataclass(frozen=True)
class TwoWindowTrend:
    """Compare summed score impact of the last ``window_days`` against the window before it."""

    window_days: int = 30
    threshold: int = 3

    def trend(self, touchpoints: Sequence[Touchpoint], today: date) -> RelationshipTrend:
        if len(touchpoints) < 2:
            return RelationshipTrend.STABLE
        recent_start = today - timedelta(days=self.window_days)
        prior_start = recent_start - timedelta(days=self.window_days)
        recent = sum(impact_of(tp) for tp in touchpoints if recent_start < tp.occurred_on <= today)
        prior = sum(
            impact_of(tp) for tp in touchpoints if prior_start < tp.occurred_on <= recent_start
        )
        if recent - prior >= self.threshold:
            return RelationshipTrend.IMPROVING
        if prior - recent >= self.threshold:
            return RelationshipTrend.DECLINING
        return RelationshipTrend.STABLE


@dataclass(frozen=True)
class AverageImpactTrend:
    """Average impact of the most recent touchpoints."""

    sample_size: int = 5
    improving_at: float = 3
    declining_at: float = 0

    def trend(self, touchpoints: Sequence[Touchpoint], today: date) -> RelationshipTrend:
        if len(touchpoints) < 2:
            return RelationshipTrend.STABLE
        recent = newest_first(touchpoints)[: self.sample_size]
        average = sum(impact_of(tp) for tp in recent) / len(recent)
        if average >= self.improving_at:
            return RelationshipTrend.IMPROVING
        if average <= self.declining_at:
            return RelationshipTrend.DECLINING
        return RelationshipTrend.STABLE


@dataclass(frozen=True)
class TouchpointStats:
    total: int = 0
    this_week: int = 0
    this_month: int = 0
    last_touchpoint_on: date | None = None
    average_gap_days: int = 0
    type_breakdown: dict[str, int] = field(default_factory=dict)
    outcome_breakdown: dict[str, int] = field(default_factory=dict)
    follow_ups_pending: int = 0
    total_duration: int = 0
    average_duration: int = 0
    tags_used: list[str] = field(default_factory=list)
    relationship_trend: RelationshipTrend = RelationshipTrend.STABLE
    activity_score: int = 0


def touchpoint_stats(
    touchpoints: Sequence[Touchpoint],
    today: date,
    trend_policy: TrendPolicy | None = None,
) -> TouchpointStats:
    ordered = newest_first(touchpoints)
    policy = trend_policy or TwoWindowTrend()

    week_from = week_start(today)
    week_to = week_from + timedelta(days=7)
    month_from = today - timedelta(days=30)

    durations = [tp.duration_minutes for tp in ordered if tp.duration_minutes]
    tags = list(dict.fromkeys(tag for tp in ordered for tag in tp.tags))

    gaps = [
        (newer.occurred_on - older.occurred_on).days
        for newer, older in zip(ordered, ordered[1:])
    ]

    stats = TouchpointStats(
        total=len(ordered),
        this_week=sum(1 for tp in ordered if week_from <= tp.occurred_on < week_to),
        this_month=sum(1 for tp in ordered if tp.occurred_on >= month_from),
        last_touchpoint_on=ordered[0].occurred_on if ordered else None,
        average_gap_days=round_half_up(sum(gaps) / len(gaps)) if gaps else 0,
        type_breakdown=dict(Counter(tp.type for tp in ordered)),
        outcome_breakdown=dict(Counter(tp.outcome for tp in ordered)),
        follow_ups_pending=sum(
            1
            for tp in ordered
            if tp.follow_up_required
            and not tp.follow_up_completed
            and tp.follow_up_on is not None
            and tp.follow_up_on >= today
        ),
        total_duration=sum(durations),
        average_duration=round_half_up(sum(durations) / len(durations)) if durations else 0,
        tags_used=tags,
        relationship_trend=policy.trend(ordered, today),
    )
    return replace(stats, activity_score=activity_score(stats))


def activity_score(stats: TouchpointStats) -> int:
    score = min(40, stats.this_week * 8)
    if stats.average_gap_days <= 7:
        score += 30
    elif stats.average_gap_days <= 14:
        score += 20
    elif stats.average_gap_days <= 30:
        score += 10
    score += min(20, len(stats.type_breakdown) * 4)
    positive = stats.outcome_breakdown.get(TouchpointOutcome.POSITIVE.value, 0)
    score += positive / max(1, stats.total) * 10
    return min(100, round_half_up(score))
