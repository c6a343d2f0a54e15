import json
from pathlib import Path

from prm.services import directory
from prm.services.events import EventBus, EventLogger
from prm.store.sqlite import CollectionStore


def test_bus_delivers_to_named_and_wildcard_handlers() -> None:
    bus = EventBus()
    seen = []
    bus.on("deal:added", lambda event, payload: seen.append(("named", event, payload["id"])))
    bus.on("*", lambda event, payload: seen.append(("any", event, payload["id"])))

    bus.emit("deal:added", {"id": "d1"})
    bus.emit("contact:added", {"id": "c1"})

    assert seen == [
        ("named", "deal:added", "d1"),
        ("any", "deal:added", "d1"),
        ("any", "contact:added", "c1"),
    ]


def test_unsubscribe_stops_delivery() -> None:
    bus = EventBus()
    seen = []
    unsubscribe = bus.on("deal:added", lambda event, payload: seen.append(event))
    bus.emit("deal:added")
    unsubscribe()
    unsubscribe()
    bus.emit("deal:added")
    assert seen == ["deal:added"]


def test_event_logger_writes_ndjson(tmp_path: Path) -> None:
    path = tmp_path / "events.ndjson"
    bus = EventBus()
    EventLogger(path=path, workspace="demo").attach(bus)

    bus.emit("deal:stage-changed", {"id": "d1", "changed_fields": ["stage", "probability"]})
    bus.emit("contact:deleted", {"id": "c1"})

    entries = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [(e["entity_type"], e["event_type"], e["external_id"]) for e in entries] == [
        ("deal", "stage-changed", "d1"),
        ("contact", "deleted", "c1"),
    ]
    assert entries[0]["changed_fields"] == ["stage", "probability"]
    assert entries[0]["workspace"] == "demo"


def test_disabled_logger_writes_nothing(tmp_path: Path) -> None:
    path = tmp_path / "events.ndjson"
    bus = EventBus()
    EventLogger(path=path, workspace="demo", enabled=False).attach(bus)
    bus.emit("deal:added", {"id": "d1"})
    assert not path.exists()


def test_mutations_emit_events(tmp_path: Path) -> None:
    store = CollectionStore(tmp_path / "test.sqlite")
    store.apply_schema()
    bus = EventBus()
    seen = []
    bus.on("*", lambda event, payload: seen.append(event))

    team = directory.add_team(store, "West", bus=bus)
    contact = directory.add_contact(store, "Ada", team_id=team.team_id, bus=bus)
    directory.update_contact(store, contact.contact_id, {"tier": 1}, bus=bus)
    directory.delete_contact(store, contact.contact_id, bus=bus)

    assert seen == ["team:added", "contact:added", "contact:updated", "contact:deleted"]
