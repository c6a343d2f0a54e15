from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Any

from prm.domain import rules
from prm.domain.dates import utc_now
from prm.domain.models import Deal
from prm.domain.records import to_record
from prm.domain.stages import DealStage, ReferralType
from prm.services.events import EventBus, emit
from prm.services.repository import ensure_saved, load_list, save_list
from prm.services.utils import new_id
from prm.store.sqlite import CollectionStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "name",
    "value",
    "probability",
    "close_date",
    "contact_id",
    "description",
    "referral_source",
    "referral_team",
    "referral_type",
    "referral_notes",
    "referral_date",
}


class DealError(RuntimeError):
    pass


def list_deals(store: CollectionStore, stage: str | None = None) -> list[Deal]:
    deals = load_list(store, "deals", Deal)
    if stage:
        rules.validate_enum(stage, [s.value for s in DealStage], "stage")
        deals = [deal for deal in deals if deal.stage == stage]
    return deals


def get_deal(store: CollectionStore, deal_id: str) -> Deal | None:
    for deal in load_list(store, "deals", Deal):
        if deal.deal_id == deal_id:
            return deal
    return None


def add_deal(
    store: CollectionStore,
    name: str,
    value: float | None,
    stage: str = DealStage.PREQUALIFIED.value,
    contact_id: str | None = None,
    close_date: date | None = None,
    probability: float | None = None,
    description: str | None = None,
    referral_source: str | None = None,
    referral_team: str | None = None,
    referral_type: str | None = None,
    referral_notes: str | None = None,
    referral_date: date | None = None,
    *,
    bus: EventBus | None = None,
) -> Deal:
    rules.require(name, "name")
    rules.validate_enum(stage, [s.value for s in DealStage], "stage")
    rules.validate_enum(referral_type, [t.value for t in ReferralType], "referral_type")
    if referral_source and referral_type is None:
        referral_type = ReferralType.DIRECT.value

    if probability is None:
        probability = DealStage(stage).default_probability

    now = utc_now()
    deal = Deal(
        deal_id=new_id(),
        name=name,
        value=rules.validate_value(value),
        stage=stage,
        probability=rules.clamp_probability(probability),
        close_date=close_date,
        contact_id=contact_id,
        description=description,
        referral_source=referral_source,
        referral_team=referral_team,
        referral_type=referral_type,
        referral_notes=referral_notes,
        referral_date=referral_date or (now.date() if referral_source else None),
        created_at=now,
        updated_at=now,
    )
    deals = load_list(store, "deals", Deal)
    deals.append(deal)
    ensure_saved(save_list(store, "deals", deals), DealError, "deals")
    logger.debug("Added deal %s at stage %s", deal.deal_id, stage)
    emit(bus, "deal:added", {"id": deal.deal_id, "record": to_record(deal)})
    return deal


def change_stage(
    store: CollectionStore,
    deal_id: str,
    stage: str,
    probability: float | None = None,
    *,
    bus: EventBus | None = None,
) -> Deal:
    """Move a deal to ``stage``.

    Any stage may follow any other. The probability resets to the stage
    default unless ``probability`` overrides it.
    """
    rules.validate_enum(stage, [s.value for s in DealStage], "stage")
    new_probability = DealStage(stage).default_probability
    if probability is not None:
        new_probability = probability
    deal = _update(
        store,
        deal_id,
        {"stage": stage, "probability": rules.clamp_probability(new_probability)},
    )
    emit(bus, "deal:stage-changed", {"id": deal_id, "record": to_record(deal), "changed_fields": ["stage", "probability"]})
    return deal


def update_deal(
    store: CollectionStore,
    deal_id: str,
    changes: dict[str, Any],
    *,
    bus: EventBus | None = None,
) -> Deal:
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise rules.ValidationError(f"Cannot update deal fields: {', '.join(sorted(unknown))}")
    changes = dict(changes)
    if "value" in changes:
        changes["value"] = rules.validate_value(changes["value"])
    if "probability" in changes:
        changes["probability"] = rules.clamp_probability(changes["probability"])
    if "referral_type" in changes:
        rules.validate_enum(changes["referral_type"], [t.value for t in ReferralType], "referral_type")
    deal = _update(store, deal_id, changes)
    emit(bus, "deal:updated", {"id": deal_id, "record": to_record(deal), "changed_fields": sorted(changes)})
    return deal


def delete_deal(store: CollectionStore, deal_id: str, *, bus: EventBus | None = None) -> None:
    deals = load_list(store, "deals", Deal)
    remaining = [deal for deal in deals if deal.deal_id != deal_id]
    if len(remaining) == len(deals):
        raise DealError(f"Deal not found: {deal_id}")
    ensure_saved(save_list(store, "deals", remaining), DealError, "deals")
    emit(bus, "deal:deleted", {"id": deal_id})


def _update(store: CollectionStore, deal_id: str, changes: dict[str, Any]) -> Deal:
    deals = load_list(store, "deals", Deal)
    for index, deal in enumerate(deals):
        if deal.deal_id == deal_id:
            deals[index] = replace(deal, **changes, updated_at=utc_now())
            ensure_saved(save_list(store, "deals", deals), DealError, "deals")
            return deals[index]
    raise DealError(f"Deal not found: {deal_id}")
