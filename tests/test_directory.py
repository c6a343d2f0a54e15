import sqlite3
from datetime import date
from pathlib import Path

import pytest

from prm.domain.rules import ValidationError
from prm.services import directory, relationships, tasks
from prm.services.directory import DirectoryError
from prm.services.relationships import RelationshipError
from prm.store.sqlite import CollectionStore, SqliteSession


def _store(tmp_path: Path) -> CollectionStore:
    store = CollectionStore(tmp_path / "test.sqlite")
    store.apply_schema()
    return store


def test_contacts_are_grouped_by_team(tmp_path: Path) -> None:
    store = _store(tmp_path)
    directory.add_team(store, "West", team_id="west")
    ada = directory.add_contact(store, "Ada", team_id="west")
    linus = directory.add_contact(store, "Linus")

    groups = store.get_all("contacts")
    assert [c["contact_id"] for c in groups["west"]] == [ada.contact_id]
    assert [c["contact_id"] for c in groups["unassigned"]] == [linus.contact_id]
    assert linus.tier == 3


def test_moving_contact_between_teams(tmp_path: Path) -> None:
    store = _store(tmp_path)
    directory.add_team(store, "West", team_id="west")
    ada = directory.add_contact(store, "Ada")

    moved = directory.update_contact(store, ada.contact_id, {"team_id": "west"})
    assert moved.team_id == "west"
    assert set(store.get_all("contacts")) == {"west"}
    assert directory.list_contacts(store, "west") == [moved]


def test_contact_validation(tmp_path: Path) -> None:
    store = _store(tmp_path)
    with pytest.raises(ValidationError):
        directory.add_contact(store, "Ada", tier=4)
    with pytest.raises(DirectoryError):
        directory.add_contact(store, "Ada", team_id="nowhere")
    with pytest.raises(ValidationError):
        directory.update_contact(store, "c1", {"score": 10})
    with pytest.raises(DirectoryError):
        directory.delete_contact(store, "missing")
    assert directory.contact_name(store, "missing") == "Unknown Contact"


def test_members_and_team_delete(tmp_path: Path) -> None:
    store = _store(tmp_path)
    directory.add_team(store, "West", team_id="west")
    member = directory.add_member(store, "west", "Grace", "LoL")
    directory.add_contact(store, "Ada", team_id="west")
    with pytest.raises(ValidationError):
        directory.add_member(store, "west", "Bob", "CEO")
    with pytest.raises(DirectoryError):
        directory.add_member(store, "east", "Bob", "AM")

    assert directory.update_member(store, member.member_id, {"tier": 1}).tier == 1

    directory.delete_team(store, "west")
    assert directory.list_teams(store) == []
    assert directory.list_members(store) == []
    assert [c.team_id for c in directory.list_contacts(store)] == [None]


def test_delete_team_is_all_or_nothing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = _store(tmp_path)
    directory.add_team(store, "West", team_id="west")
    directory.add_member(store, "west", "Grace", "AM")
    directory.add_contact(store, "Ada", team_id="west")
    original = SqliteSession.replace_all

    def failing(self, name, payload):
        if name == "team_members":
            raise sqlite3.OperationalError("disk I/O error")
        original(self, name, payload)

    monkeypatch.setattr(SqliteSession, "replace_all", failing)
    with pytest.raises(DirectoryError, match="Could not save"):
        directory.delete_team(store, "west")
    monkeypatch.undo()

    assert [team.team_id for team in directory.list_teams(store)] == ["west"]
    assert [member.team_id for member in directory.list_members(store)] == ["west"]
    assert [contact.team_id for contact in directory.list_contacts(store)] == ["west"]


def test_relationships(tmp_path: Path) -> None:
    store = _store(tmp_path)
    weak = relationships.add_relationship(store, "c1", "c2", "reports-to", "weak")
    relationships.add_relationship(store, "c3", "c1", "peer", "strong")
    with pytest.raises(ValidationError):
        relationships.add_relationship(store, "c1", "c1", "peer")

    assert len(relationships.list_relationships(store, "c1")) == 2
    assert relationships.strongest_link(store, "c1") == "strong"
    assert relationships.strongest_link(store, "c2") == "weak"

    relationships.update_relationship(store, weak.relationship_id, {"strength": "medium"})
    assert relationships.strongest_link(store, "c2") == "medium"
    relationships.delete_relationship(store, weak.relationship_id)
    with pytest.raises(RelationshipError):
        relationships.delete_relationship(store, weak.relationship_id)


def test_tasks_sorted_by_due_date(tmp_path: Path) -> None:
    store = _store(tmp_path)
    later = tasks.add_task(store, "Send deck", due_on=date(2026, 11, 1))
    undated = tasks.add_task(store, "Intro call")
    sooner = tasks.add_task(store, "Prep QBR", due_on=date(2026, 10, 25))

    assert [t.task_id for t in tasks.list_tasks(store)] == [
        sooner.task_id,
        later.task_id,
        undated.task_id,
    ]
    tasks.set_status(store, sooner.task_id, "done")
    assert [t.task_id for t in tasks.list_tasks(store, "open")] == [later.task_id, undated.task_id]
