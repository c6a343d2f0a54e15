from prm.scoring.attribution import AttributionReport, aggregate_referrals
from prm.scoring.influence import InfluenceProfile, decision_power, influence_profiles, influence_score
from prm.scoring.pipeline import TeamPerformance, team_performance
from prm.scoring.priority import deal_priority, priority_score, rank_deals
from prm.scoring.relationship import relationship_score, score_from_stats, score_subject
from prm.scoring.touchpoints import (
    AverageImpactTrend,
    TouchpointStats,
    TrendPolicy,
    TwoWindowTrend,
    score_impact,
    touchpoint_stats,
)

__all__ = [
    "AttributionReport",
    "AverageImpactTrend",
    "InfluenceProfile",
    "TeamPerformance",
    "TouchpointStats",
    "TrendPolicy",
    "TwoWindowTrend",
    "aggregate_referrals",
    "deal_priority",
    "decision_power",
    "influence_profiles",
    "influence_score",
    "priority_score",
    "rank_deals",
    "relationship_score",
    "score_from_stats",
    "score_impact",
    "score_subject",
    "team_performance",
    "touchpoint_stats",
]
