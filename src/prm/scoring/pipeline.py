from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from prm.domain.dates import days_since, quarter_bounds, round_half_up
from prm.domain.models import Contact, Deal, Team
from prm.domain.stages import DealStage

HIGH_PROBABILITY = 75
LIKELY_TO_CLOSE = 50
ENGAGED_WITHIN_DAYS = 30


@dataclass(frozen=True)
class PipelineStats:
    total_value: float
    weighted_value: float
    avg_deal_size: float
    close_rate: int
    quarterly_forecast: float
    total_deals: int


@dataclass(frozen=True)
class Forecast:
    best_case: float
    most_likely: float
    worst_case: float
    deals_to_close: int


@dataclass(frozen=True)
class StageColumn:
    stage: DealStage
    deal_count: int
    total_value: float


@dataclass(frozen=True)
class TeamPerformance:
    team_id: str
    name: str
    contact_count: int
    deal_count: int
    total_value: float
    avg_deal_size: float
    win_rate: int
    engagement_rate: int


def weighted(deal: Deal) -> float:
    return deal.value * (deal.probability / 100)


def close_rate(deals: Sequence[Deal]) -> int:
    won = sum(1 for deal in deals if deal.stage == DealStage.DEAL_WON.value)
    lost = sum(1 for deal in deals if deal.stage == DealStage.DEAL_LOST.value)
    if won + lost == 0:
        return 0
    return round_half_up(won / (won + lost) * 100)


def pipeline_stats(deals: Sequence[Deal], today: date | None = None) -> PipelineStats:
    today = today or date.today()
    quarter_start, quarter_end = quarter_bounds(today)
    total_value = sum(deal.value for deal in deals)
    return PipelineStats(
        total_value=total_value,
        weighted_value=sum(weighted(deal) for deal in deals),
        avg_deal_size=total_value / len(deals) if deals else 0.0,
        close_rate=close_rate(deals),
        quarterly_forecast=sum(
            weighted(deal)
            for deal in deals
            if deal.close_date is not None and quarter_start <= deal.close_date <= quarter_end
        ),
        total_deals=len(deals),
    )


def forecast(deals: Sequence[Deal]) -> Forecast:
    return Forecast(
        best_case=sum(deal.value for deal in deals),
        most_likely=sum(weighted(deal) for deal in deals),
        worst_case=sum(deal.value * 0.5 for deal in deals if deal.probability >= HIGH_PROBABILITY),
        deals_to_close=sum(1 for deal in deals if deal.probability >= LIKELY_TO_CLOSE),
    )


def stage_board(deals: Sequence[Deal]) -> list[StageColumn]:
    columns = []
    for stage in DealStage:
        in_stage = [deal for deal in deals if deal.stage == stage.value]
        columns.append(
            StageColumn(
                stage=stage,
                deal_count=len(in_stage),
                total_value=sum(deal.value for deal in in_stage),
            )
        )
    return columns


def engagement_rate(contacts: Sequence[Contact], today: date | None = None) -> int:
    """Percent of contacts touched within the last 30 days."""
    if not contacts:
        return 0
    today = today or date.today()
    engaged = sum(
        1
        for contact in contacts
        if contact.last_touchpoint_on is not None
        and days_since(contact.last_touchpoint_on, today) <= ENGAGED_WITHIN_DAYS
    )
    return round_half_up(engaged / len(contacts) * 100)


def team_performance(
    team: Team,
    contacts: Sequence[Contact],
    deals: Sequence[Deal],
    today: date | None = None,
) -> TeamPerformance:
    """A team's deals are the deals whose contact belongs to the team."""
    contact_ids = {contact.contact_id for contact in contacts}
    team_deals = [deal for deal in deals if deal.contact_id in contact_ids]
    total_value = sum(deal.value for deal in team_deals)
    return TeamPerformance(
        team_id=team.team_id,
        name=team.name,
        contact_count=len(contacts),
        deal_count=len(team_deals),
        total_value=total_value,
        avg_deal_size=total_value / len(team_deals) if team_deals else 0.0,
        win_rate=close_rate(team_deals),
        engagement_rate=engagement_rate(contacts, today),
    )
