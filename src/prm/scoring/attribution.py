"""Referral attribution: which contacts, teams and channels drive pipeline value."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from typing import Any

from prm.domain.models import Deal
from prm.domain.stages import DealStage

UNASSIGNED = "unassigned"


@dataclass
class ReferralGroup:
    total_value: float = 0.0
    won_value: float = 0.0
    deal_count: int = 0
    won_deals: int = 0
    avg_deal_size: float = 0.0
    win_rate: float = 0.0

    def add(self, deal: Deal) -> None:
        self.total_value += deal.value
        self.deal_count += 1
        if deal.stage == DealStage.DEAL_WON.value:
            self.won_value += deal.value
            self.won_deals += 1

    def finalize(self) -> None:
        if self.deal_count:
            self.avg_deal_size = self.total_value / self.deal_count
            self.win_rate = self.won_deals / self.deal_count * 100
        else:
            self.avg_deal_size = 0.0
            self.win_rate = 0.0


@dataclass(frozen=True)
class AttributionSummary:
    total_referred_value: float
    total_referred_deals: int
    average_referral_value: float
    top_referrer: str | None
    top_referral_team: str | None


@dataclass(frozen=True)
class AttributionReport:
    by_contact: dict[str, ReferralGroup] = field(default_factory=dict)
    by_team: dict[str, ReferralGroup] = field(default_factory=dict)
    by_type: dict[str, ReferralGroup] = field(default_factory=dict)
    summary: AttributionSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def aggregate_referrals(deals: Iterable[Deal]) -> AttributionReport:
    referred = [deal for deal in deals if deal.referral_source]

    by_contact: dict[str, ReferralGroup] = {}
    by_team: dict[str, ReferralGroup] = {}
    by_type: dict[str, ReferralGroup] = {}
    for deal in referred:
        by_contact.setdefault(deal.referral_source, ReferralGroup()).add(deal)
        by_team.setdefault(deal.referral_team or UNASSIGNED, ReferralGroup()).add(deal)
        by_type.setdefault(deal.referral_type or UNASSIGNED, ReferralGroup()).add(deal)

    for groups in (by_contact, by_team, by_type):
        for group in groups.values():
            group.finalize()

    total_value = sum(deal.value for deal in referred)
    summary = AttributionSummary(
        total_referred_value=total_value,
        total_referred_deals=len(referred),
        average_referral_value=total_value / len(referred) if referred else 0.0,
        top_referrer=_top_by_won_value(by_contact),
        top_referral_team=_top_by_won_value(
            {key: group for key, group in by_team.items() if key != UNASSIGNED}
        ),
    )
    return AttributionReport(by_contact=by_contact, by_team=by_team, by_type=by_type, summary=summary)


def _top_by_won_value(groups: dict[str, ReferralGroup]) -> str | None:
    # max() keeps the first of equal keys, so ties go to the earliest group.
    if not groups:
        return None
    return max(groups, key=lambda key: groups[key].won_value)
