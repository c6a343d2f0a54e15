from datetime import date, timedelta

from prm.domain.models import Touchpoint
from prm.domain.stages import RelationshipTrend
from prm.scoring.relationship import recency_adjustment, relationship_score, score_subject
from prm.scoring.touchpoints import AverageImpactTrend, TwoWindowTrend, score_impact, touchpoint_stats

TODAY = date(2026, 10, 21)  # Wednesday; the week starts Sunday 2026-10-18


def _tp(days_ago: int, type_: str = "call", outcome: str = "neutral", **kwargs) -> Touchpoint:
    return Touchpoint(
        touchpoint_id=f"tp-{days_ago}-{type_}-{outcome}",
        occurred_on=TODAY - timedelta(days=days_ago),
        type=type_,
        outcome=outcome,
        contact_id="c1",
        **kwargs,
    )


def test_recent_active_tier1_contact_clamps_to_ten() -> None:
    score = relationship_score(
        total=12,
        this_week=2,
        last_touchpoint_on=TODAY - timedelta(days=3),
        trend=RelationshipTrend.IMPROVING,
        tier=1,
        today=TODAY,
    )
    assert score == 10


def test_never_contacted_tier3_contact() -> None:
    score = relationship_score(
        total=0, this_week=0, last_touchpoint_on=None, trend="stable", tier=3, today=TODAY
    )
    assert score == 2


def test_tier_multiplier_rounds_half_up() -> None:
    # 5 - 1 (45 days) + 1 (5 touchpoints) = 5; 5 * 1.1 = 5.5 -> 6
    score = relationship_score(
        total=5,
        this_week=0,
        last_touchpoint_on=TODAY - timedelta(days=45),
        trend="stable",
        tier=2,
        today=TODAY,
    )
    assert score == 6


def test_declining_stale_contact_floors_at_one() -> None:
    score = relationship_score(
        total=1,
        this_week=0,
        last_touchpoint_on=TODAY - timedelta(days=200),
        trend="declining",
        tier=3,
        today=TODAY,
    )
    assert score == 1


def test_unknown_tier_scores_like_tier3() -> None:
    kwargs = dict(
        total=5,
        this_week=0,
        last_touchpoint_on=TODAY - timedelta(days=20),
        trend="stable",
        today=TODAY,
    )
    assert relationship_score(tier="gold", **kwargs) == relationship_score(tier=3, **kwargs) == 7
    assert relationship_score(tier="tier2", **kwargs) == 8


def test_recency_band_edges() -> None:
    assert [recency_adjustment(days) for days in (0, 7, 8, 14, 15, 30, 31, 60, 61, 90, 91, 999)] == [
        3, 3, 2, 2, 1, 1, -1, -1, -2, -2, -3, -3
    ]


def test_score_impact_clamps_and_adds_bonuses() -> None:
    assert score_impact("call", "positive") == 5
    assert score_impact("email", "neutral") == 2
    assert score_impact("text", "negative") == -1
    assert score_impact("meeting", "positive", duration_minutes=45, is_important=True) == 5
    assert score_impact("email", "neutral", duration_minutes=30) == 3


def test_touchpoint_stats_counts_sunday_aligned_week() -> None:
    history = [_tp(0), _tp(3, "email"), _tp(4, "meeting"), _tp(40, "email")]
    stats = touchpoint_stats(history, TODAY)

    # 2026-10-18 (3 days ago) is Sunday and counts; Saturday does not.
    assert stats.total == 4
    assert stats.this_week == 2
    assert stats.this_month == 3
    assert stats.last_touchpoint_on == TODAY
    assert stats.type_breakdown == {"call": 1, "email": 2, "meeting": 1}


def test_two_window_trend() -> None:
    policy = TwoWindowTrend(window_days=30)
    improving = [_tp(2, "meeting", "positive"), _tp(5, "meeting", "positive")]
    declining = [_tp(2, "email"), _tp(40, "meeting", "positive"), _tp(45, "meeting", "positive")]

    assert policy.trend(improving, TODAY) is RelationshipTrend.IMPROVING
    assert policy.trend(declining, TODAY) is RelationshipTrend.DECLINING
    assert policy.trend([_tp(1, "meeting", "positive")], TODAY) is RelationshipTrend.STABLE


def test_average_impact_trend() -> None:
    policy = AverageImpactTrend()
    declining = [_tp(1, "text", "negative"), _tp(2, "email", "negative")]
    stable = [_tp(1, "email"), _tp(2, "email")]
    improving = [_tp(1, "call", "positive"), _tp(2, "call")]

    assert policy.trend(declining, TODAY) is RelationshipTrend.DECLINING
    assert policy.trend(stable, TODAY) is RelationshipTrend.STABLE
    assert policy.trend(improving, TODAY) is RelationshipTrend.IMPROVING


def test_score_subject_from_history() -> None:
    history = [_tp(days, "meeting", "positive") for days in range(0, 12)]
    # 5 + 3 (today) + 2 (12 touchpoints) + 1 (4 this week) + 1 (improving) = 12 -> clamped
    assert score_subject(history, tier=3, today=TODAY) == 10
    assert score_subject([], tier=1, today=TODAY) == 2


def test_tier_monotonicity_and_range() -> None:
    for days_ago in (None, 0, 10, 45, 120):
        for total in (0, 3, 7, 15):
            for trend in RelationshipTrend:
                scores = [
                    relationship_score(
                        total=total,
                        this_week=min(total, 2),
                        last_touchpoint_on=TODAY - timedelta(days=days_ago) if days_ago is not None else None,
                        trend=trend,
                        tier=tier,
                        today=TODAY,
                    )
                    for tier in (1, 2, 3)
                ]
                assert scores[0] >= scores[1] >= scores[2]
                assert all(isinstance(s, int) and 1 <= s <= 10 for s in scores)
