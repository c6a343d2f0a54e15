"""Derived numbers: relationship scores, deal priorities, attribution, pipeline, influence and team views."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from prm.domain.models import Contact, Deal, TeamMember, Touchpoint
from prm.domain.stages import DealStage
from prm.scoring.attribution import AttributionReport, aggregate_referrals
from prm.scoring.influence import InfluenceProfile, influence_profiles
from prm.scoring.pipeline import (
    Forecast,
    PipelineStats,
    StageColumn,
    TeamPerformance,
    forecast,
    pipeline_stats,
    stage_board,
    team_performance,
)
from prm.scoring.priority import rank_deals
from prm.scoring.relationship import score_from_stats
from prm.scoring.touchpoints import TouchpointStats, TrendPolicy, TwoWindowTrend, touchpoint_stats
from prm.services import deals as deal_service
from prm.services import directory, relationships
from prm.services.repository import load_list
from prm.store.sqlite import CollectionStore


@dataclass(frozen=True)
class SubjectScore:
    subject_id: str
    name: str
    tier: int
    score: int
    stats: TouchpointStats


@dataclass(frozen=True)
class PipelineReport:
    stats: PipelineStats
    forecast: Forecast
    board: list[StageColumn]


def score_contact(
    contact: Contact,
    touchpoints: list[Touchpoint],
    today: date,
    trend_policy: TrendPolicy | None = None,
) -> SubjectScore:
    history = [tp for tp in touchpoints if tp.contact_id == contact.contact_id]
    stats = touchpoint_stats(history, today, trend_policy)
    return SubjectScore(
        subject_id=contact.contact_id,
        name=contact.name,
        tier=contact.tier,
        score=score_from_stats(stats, contact.tier, today),
        stats=stats,
    )


def score_member(
    member: TeamMember,
    touchpoints: list[Touchpoint],
    today: date,
    trend_policy: TrendPolicy | None = None,
) -> SubjectScore:
    history = [tp for tp in touchpoints if tp.team_member_id == member.member_id]
    stats = touchpoint_stats(history, today, trend_policy)
    return SubjectScore(
        subject_id=member.member_id,
        name=member.name,
        tier=member.tier,
        score=score_from_stats(stats, member.tier, today),
        stats=stats,
    )


def contact_scores(
    store: CollectionStore,
    today: date | None = None,
    trend_policy: TrendPolicy | None = None,
) -> list[SubjectScore]:
    today = today or date.today()
    policy = trend_policy or TwoWindowTrend()
    touchpoints = load_list(store, "touchpoints", Touchpoint)
    scores = [score_contact(c, touchpoints, today, policy) for c in directory.list_contacts(store)]
    return sorted(scores, key=lambda item: item.score, reverse=True)


def member_scores(
    store: CollectionStore,
    today: date | None = None,
    trend_policy: TrendPolicy | None = None,
) -> list[SubjectScore]:
    today = today or date.today()
    policy = trend_policy or TwoWindowTrend()
    touchpoints = load_list(store, "touchpoints", Touchpoint)
    scores = [score_member(m, touchpoints, today, policy) for m in directory.list_members(store)]
    return sorted(scores, key=lambda item: item.score, reverse=True)


def prioritized_deals(
    store: CollectionStore,
    today: date | None = None,
    trend_policy: TrendPolicy | None = None,
    include_closed: bool = False,
) -> list[tuple[Deal, int]]:
    today = today or date.today()
    policy = trend_policy or TwoWindowTrend()
    touchpoints = load_list(store, "touchpoints", Touchpoint)
    contacts = {contact.contact_id: contact for contact in directory.list_contacts(store)}
    cache: dict[str, int] = {}

    def relationship_for(deal: Deal) -> int:
        contact = contacts.get(deal.contact_id) if deal.contact_id else None
        if contact is None:
            return 0
        if contact.contact_id not in cache:
            cache[contact.contact_id] = score_contact(contact, touchpoints, today, policy).score
        return cache[contact.contact_id]

    deals = deal_service.list_deals(store)
    if not include_closed:
        closed = {DealStage.DEAL_WON.value, DealStage.DEAL_LOST.value}
        deals = [deal for deal in deals if deal.stage not in closed]
    return rank_deals(deals, relationship_for, today)


def attribution_report(store: CollectionStore) -> AttributionReport:
    return aggregate_referrals(deal_service.list_deals(store))


def pipeline_report(store: CollectionStore, today: date | None = None) -> PipelineReport:
    deals = deal_service.list_deals(store)
    return PipelineReport(
        stats=pipeline_stats(deals, today),
        forecast=forecast(deals),
        board=stage_board(deals),
    )


def influence_report(store: CollectionStore) -> list[InfluenceProfile]:
    return influence_profiles(directory.list_contacts(store), relationships.list_relationships(store))


def team_report(store: CollectionStore, today: date | None = None) -> list[TeamPerformance]:
    deals = deal_service.list_deals(store)
    return [
        team_performance(team, directory.list_contacts(store, team.team_id), deals, today)
        for team in directory.list_teams(store)
    ]
