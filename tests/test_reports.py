from datetime import date, timedelta
from pathlib import Path

from prm.domain.models import Contact, Relationship
from prm.domain.stages import InfluenceLevel
from prm.scoring.influence import decision_power, influence_level, influence_profiles, title_weight
from prm.scoring.pipeline import engagement_rate
from prm.services import deals, directory, relationships, reports, touch
from prm.store.sqlite import CollectionStore

TODAY = date(2026, 10, 21)


def _store(tmp_path: Path) -> CollectionStore:
    store = CollectionStore(tmp_path / "test.sqlite")
    store.apply_schema()
    return store


def test_engaged_tier1_contact_on_overdue_certain_deal_scores_one_hundred(tmp_path: Path) -> None:
    store = _store(tmp_path)
    ada = directory.add_contact(store, "Ada", tier=1)
    for days_ago in (0, 1):
        touch.log_touchpoint(
            store,
            type="meeting",
            outcome="positive",
            contact_id=ada.contact_id,
            occurred_on=TODAY - timedelta(days=days_ago),
        )
    deal = deals.add_deal(
        store,
        "Acme",
        1_000_000,
        stage="signed",
        probability=100,
        contact_id=ada.contact_id,
        close_date=TODAY - timedelta(days=5),
    )

    assert reports.prioritized_deals(store, TODAY) == [(deal, 100)]


def test_priority_view_skips_closed_deals_by_default(tmp_path: Path) -> None:
    store = _store(tmp_path)
    open_deal = deals.add_deal(store, "Open", 1000, stage="qualified")
    deals.add_deal(store, "Won", 1000, stage="deal-won")
    deals.add_deal(store, "Lost", 1000, stage="deal-lost")

    assert [deal for deal, _ in reports.prioritized_deals(store, TODAY)] == [open_deal]
    ranked = reports.prioritized_deals(store, TODAY, include_closed=True)
    assert sorted(deal.name for deal, _ in ranked) == ["Lost", "Open", "Won"]


def test_deal_without_known_contact_gets_no_relationship_points(tmp_path: Path) -> None:
    store = _store(tmp_path)
    deals.add_deal(store, "Orphan", 0, stage="qualified", probability=0, contact_id="gone")
    assert [score for _, score in reports.prioritized_deals(store, TODAY)] == [5]


def test_title_weights_and_decision_power() -> None:
    assert title_weight("CEO") == 10
    assert title_weight("Vice President, Sales") == 9
    assert title_weight("Senior Manager") == 5
    assert title_weight("Director of IT") == 7
    assert title_weight(None) == 0

    assert [decision_power(t) for t in ("CEO", "CTO", "CIO", "President", "VP Sales", "Director", "Analyst")] == [
        10, 9, 8, 7, 6, 5, 3
    ]


def test_influence_levels() -> None:
    assert [influence_level(score) for score in (10, 7, 6.9, 4, 1, 0.5)] == [
        InfluenceLevel.HIGH,
        InfluenceLevel.HIGH,
        InfluenceLevel.MEDIUM,
        InfluenceLevel.MEDIUM,
        InfluenceLevel.LOW,
        InfluenceLevel.UNKNOWN,
    ]


def test_influence_profiles_rank_contacts() -> None:
    contacts = [
        Contact(contact_id="c4", name="Di"),
        Contact(contact_id="c3", name="Cy", title="Director of IT"),
        Contact(contact_id="c1", name="Ann", title="CEO"),
        Contact(contact_id="c5", name="Ed", title="Team Lead"),
        Contact(contact_id="c2", name="Bo", title="Vice President, Sales"),
        Contact(contact_id="c6", name="Flo"),
    ]
    links = [
        Relationship(relationship_id="r1", from_id="c3", to_id="c4", kind="peer", strength="strong"),
        Relationship(relationship_id="r2", from_id="c2", to_id="c3", kind="reports-to", strength="weak"),
        Relationship(relationship_id="r3", from_id="c1", to_id="c1x", kind="peer", strength="strong"),
    ]

    profiles = influence_profiles(contacts, links)

    assert [(p.contact_id, p.score) for p in profiles] == [
        ("c1", 10),
        ("c2", 9.5),
        ("c3", 9.0),
        ("c5", 4),
        ("c4", 1.5),
        ("c6", 0),
    ]
    by_id = {p.contact_id: p for p in profiles}
    assert by_id["c3"].network_size == 2
    assert by_id["c5"].level is InfluenceLevel.MEDIUM
    assert by_id["c6"].level is InfluenceLevel.UNKNOWN
    assert by_id["c2"].decision_power == 7


def test_influence_report_reads_the_store(tmp_path: Path) -> None:
    store = _store(tmp_path)
    boss = directory.add_contact(store, "Ann", title="CTO")
    peer = directory.add_contact(store, "Bo")
    relationships.add_relationship(store, boss.contact_id, peer.contact_id, "peer", "strong")

    profiles = reports.influence_report(store)
    assert [(p.name, p.score) for p in profiles] == [("Ann", 10), ("Bo", 1.5)]


def test_team_report(tmp_path: Path) -> None:
    store = _store(tmp_path)
    directory.add_team(store, "West", team_id="west")
    directory.add_team(store, "East", team_id="east")
    recent = directory.add_contact(store, "Ada", team_id="west")
    never = directory.add_contact(store, "Linus", team_id="west")
    edge = directory.add_contact(store, "Grace", team_id="west")
    outsider = directory.add_contact(store, "Ken")
    directory.update_contact(store, recent.contact_id, {"last_touchpoint_on": TODAY - timedelta(days=10)})
    directory.update_contact(store, edge.contact_id, {"last_touchpoint_on": TODAY - timedelta(days=30)})
    deals.add_deal(store, "Won", 1000, stage="deal-won", contact_id=recent.contact_id)
    deals.add_deal(store, "Lost", 3000, stage="deal-lost", contact_id=never.contact_id)
    deals.add_deal(store, "Open", 2000, stage="legal", contact_id=recent.contact_id)
    deals.add_deal(store, "Elsewhere", 9000, stage="deal-won", contact_id=outsider.contact_id)

    rows = {row.team_id: row for row in reports.team_report(store, TODAY)}

    west = rows["west"]
    assert (west.contact_count, west.deal_count, west.total_value) == (3, 3, 6000)
    assert west.avg_deal_size == 2000
    assert west.win_rate == 50
    assert west.engagement_rate == 67
    east = rows["east"]
    assert (east.deal_count, east.avg_deal_size, east.win_rate, east.engagement_rate) == (0, 0.0, 0, 0)


def test_engagement_rate_of_no_contacts() -> None:
    assert engagement_rate([], TODAY) == 0
