from datetime import date
from pathlib import Path

import pytest

from prm.domain.rules import ValidationError
from prm.services import directory, touch
from prm.services.touch import SubjectActivitySync, TouchError
from prm.store.sqlite import CollectionStore


def _store(tmp_path: Path) -> CollectionStore:
    store = CollectionStore(tmp_path / "test.sqlite")
    store.apply_schema()
    return store


def test_log_touchpoint_scores_impact(tmp_path: Path) -> None:
    store = _store(tmp_path)
    contact = directory.add_contact(store, "Ada Lovelace", tier=1)

    tp = touch.log_touchpoint(
        store,
        type="meeting",
        outcome="positive",
        occurred_on=date(2026, 10, 19),
        contact_id=contact.contact_id,
        tags="exec, renewal",
    )
    assert tp.score_impact == 5
    assert tp.tags == ["exec", "renewal"]
    assert touch.get_touchpoint(store, tp.touchpoint_id) == tp


def test_touchpoint_needs_a_subject(tmp_path: Path) -> None:
    store = _store(tmp_path)
    with pytest.raises(TouchError):
        touch.log_touchpoint(store, type="call")
    with pytest.raises(ValidationError):
        touch.log_touchpoint(store, type="fax", contact_id="c1")


def test_needs_follow_up_outcome_flags_follow_up(tmp_path: Path) -> None:
    store = _store(tmp_path)
    tp = touch.log_touchpoint(store, outcome="needs-follow-up", deal_id="d1")
    assert tp.follow_up_required is True


def test_sync_keeps_contact_activity_current(tmp_path: Path) -> None:
    store = _store(tmp_path)
    sync = SubjectActivitySync()
    contact = directory.add_contact(store, "Ada Lovelace")

    first = touch.log_touchpoint(
        store, contact_id=contact.contact_id, occurred_on=date(2026, 10, 1), sync=sync
    )
    touch.log_touchpoint(store, contact_id=contact.contact_id, occurred_on=date(2026, 9, 1), sync=sync)

    refreshed = directory.get_contact(store, contact.contact_id)
    assert refreshed.last_touchpoint_on == date(2026, 10, 1)
    assert refreshed.touchpoint_count == 2

    touch.delete_touchpoint(store, first.touchpoint_id, sync=sync)
    refreshed = directory.get_contact(store, contact.contact_id)
    assert refreshed.last_touchpoint_on == date(2026, 9, 1)
    assert refreshed.touchpoint_count == 1


def test_member_touchpoint_resolves_team(tmp_path: Path) -> None:
    store = _store(tmp_path)
    team = directory.add_team(store, "West", team_id="west")
    member = directory.add_member(store, team.team_id, "Grace", "PSM", tier=2)

    tp = touch.log_touchpoint(store, team_member_id=member.member_id, sync=SubjectActivitySync())
    assert tp.team_id == "west"
    assert directory.find_member(store, member.member_id).touchpoint_count == 1
    assert [t.touchpoint_id for t in touch.list_touchpoints(store, team_id="west")] == [tp.touchpoint_id]


def test_update_recomputes_impact(tmp_path: Path) -> None:
    store = _store(tmp_path)
    tp = touch.log_touchpoint(store, type="call", outcome="neutral", contact_id="c1")
    assert tp.score_impact == 3

    updated = touch.update_touchpoint(store, tp.touchpoint_id, {"outcome": "negative"})
    assert updated.score_impact == 1

    pinned = touch.update_touchpoint(store, tp.touchpoint_id, {"score_impact": -4, "notes": "escalation"})
    assert (pinned.score_impact, pinned.notes) == (-4, "escalation")

    with pytest.raises(ValidationError):
        touch.update_touchpoint(store, tp.touchpoint_id, {"contact_id": "c2"})
    with pytest.raises(TouchError):
        touch.update_touchpoint(store, "missing", {"notes": "x"})


def test_list_touchpoints_filters_newest_first(tmp_path: Path) -> None:
    store = _store(tmp_path)
    old = touch.log_touchpoint(store, type="email", contact_id="c1", occurred_on=date(2026, 9, 1))
    new = touch.log_touchpoint(store, type="call", contact_id="c1", occurred_on=date(2026, 10, 1))
    touch.log_touchpoint(store, type="call", contact_id="c2", occurred_on=date(2026, 10, 2))

    rows = touch.list_touchpoints(store, contact_id="c1")
    assert [tp.touchpoint_id for tp in rows] == [new.touchpoint_id, old.touchpoint_id]
    assert len(touch.list_touchpoints(store, type="call")) == 2
    assert len(touch.list_touchpoints(store, start=date(2026, 9, 15), end=date(2026, 10, 1))) == 1


def test_pending_follow_ups(tmp_path: Path) -> None:
    store = _store(tmp_path)
    today = date(2026, 10, 21)
    late = touch.log_touchpoint(store, contact_id="c1", follow_up_required=True, follow_up_on=date(2026, 10, 1))
    undated = touch.log_touchpoint(store, contact_id="c1", outcome="needs-follow-up")
    soon = touch.log_touchpoint(store, contact_id="c1", follow_up_required=True, follow_up_on=date(2026, 10, 25))
    touch.log_touchpoint(store, contact_id="c1")

    pending = touch.pending_follow_ups(store, today)
    assert [item.touchpoint.touchpoint_id for item in pending] == [
        late.touchpoint_id,
        soon.touchpoint_id,
        undated.touchpoint_id,
    ]
    assert [item.overdue for item in pending] == [True, False, False]

    touch.complete_follow_up(store, late.touchpoint_id)
    assert len(touch.pending_follow_ups(store, today)) == 2
