import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from prm.cli import app

runner = CliRunner()


def _invoke(*args: str):
    result = runner.invoke(app, list(args))
    assert result.exit_code == 0, result.output
    return result


def _created_id(output: str) -> str:
    return output.strip().rsplit(": ", 1)[1]


@pytest.fixture()
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    _invoke("init")
    _invoke("workspace", "add", "demo")
    return tmp_path


def test_contact_score_flow(workspace: Path) -> None:
    contact_id = _created_id(_invoke("contact", "add", "Ada Lovelace", "--tier", "1").output)
    _invoke(
        "touch", "log", "--contact", contact_id, "--type", "meeting", "--outcome", "positive", "--on", "2026-10-19"
    )

    result = _invoke("contact", "score", contact_id, "--as-of", "2026-10-21", "--json")
    payload = json.loads(result.output)
    assert payload["score"] == 10
    assert payload["stats"]["total"] == 1
    assert payload["stats"]["this_week"] == 1

    events = (workspace / "workspaces" / "demo" / "events.ndjson").read_text(encoding="utf-8")
    assert '"event_type": "logged"' in events


def test_deal_priority_listing(workspace: Path) -> None:
    contact_id = _created_id(_invoke("contact", "add", "Ada").output)
    _invoke("deal", "add", "Small", "--value", "1000")
    big = _created_id(
        _invoke(
            "deal", "add", "Big", "--value", "500000", "--stage", "proposal-development",
            "--contact", contact_id, "--close", "2026-11-30",
        ).output
    )
    _invoke("deal", "stage", big, "legal")

    result = _invoke("deal", "list", "--by-priority", "--as-of", "2026-10-21")
    lines = result.output.strip().splitlines()
    assert "Big" in lines[0]
    assert "legal" in lines[0]
    assert "Small" in lines[1]


def test_attribution_report_json(workspace: Path) -> None:
    ada = _created_id(_invoke("contact", "add", "Ada").output)
    _invoke("team", "add", "West", "--id", "west")
    _invoke(
        "deal", "add", "Referred", "--value", "2000", "--stage", "deal-won",
        "--referral-source", ada, "--referral-team", "west",
    )

    payload = json.loads(_invoke("report", "attribution", "--json").output)
    assert payload["summary"]["top_referrer"] == ada
    assert payload["summary"]["top_referral_team"] == "west"
    assert payload["by_type"]["direct"]["won_value"] == 2000


def test_export_and_import_json(workspace: Path) -> None:
    _invoke("contact", "add", "Ada")
    _invoke("export", "json", "--out", "exports/backup.json")
    _invoke("contact", "add", "Linus")

    result = _invoke("import", "json", "exports/backup.json", "--yes")
    assert "contacts 1" in result.output
    listed = _invoke("contact", "list").output
    assert "Ada" in listed and "Linus" not in listed


def test_import_rejects_foreign_backup(workspace: Path) -> None:
    (workspace / "foreign.json").write_text(
        json.dumps({"version": "1", "export_date": "x", "app_name": "Other", "data": {}}),
        encoding="utf-8",
    )
    result = runner.invoke(app, ["import", "json", "foreign.json", "--yes"])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_domain_errors_exit_nonzero(workspace: Path) -> None:
    result = runner.invoke(app, ["deal", "add", "Acme", "--stage", "won"])
    assert result.exit_code == 1
    assert "stage must be one of" in result.output

    result = runner.invoke(app, ["touch", "log", "--type", "call"])
    assert result.exit_code == 1


def test_commands_need_a_workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["contact", "list"])
    assert result.exit_code == 1
    assert "No active workspace" in result.output


def test_csv_export_and_snapshot(workspace: Path) -> None:
    _invoke("contact", "add", "Ada")
    _invoke("export", "csv", "--out", "exports/csv")
    assert (workspace / "exports" / "csv" / "contacts.csv").exists()

    result = _invoke("snapshot")
    snapshot_dir = Path(result.output.strip().rsplit(" ", 1)[1])
    assert (workspace / snapshot_dir / "local.sqlite").exists()
    assert (workspace / snapshot_dir / "deals.csv").exists()


def test_no_events_flag_applies_to_that_invocation_only(workspace: Path) -> None:
    log = workspace / "workspaces" / "demo" / "events.ndjson"
    _invoke("--no-events", "contact", "add", "Ada")
    assert not log.exists()

    _invoke("contact", "add", "Linus")
    assert '"event_type": "added"' in log.read_text(encoding="utf-8")


def test_schema_apply_reports_version(workspace: Path) -> None:
    assert "Applied schema v1" in _invoke("schema", "apply").output


def test_influence_and_team_reports(workspace: Path) -> None:
    _invoke("team", "add", "West", "--id", "west")
    boss = _created_id(_invoke("contact", "add", "Ann", "--title", "CEO", "--team", "west").output)
    peer = _created_id(_invoke("contact", "add", "Bo", "--team", "west").output)
    _invoke("relationship", "add", boss, peer, "--strength", "strong")
    _invoke("deal", "add", "Won", "--value", "1000", "--stage", "deal-won", "--contact", boss)

    influence = json.loads(_invoke("report", "influence", "--json").output)
    assert [(row["name"], row["level"]) for row in influence] == [("Ann", "high"), ("Bo", "low")]

    teams = json.loads(_invoke("report", "teams", "--json", "--as-of", "2026-10-21").output)
    assert teams[0]["team_id"] == "west"
    assert teams[0]["win_rate"] == 100
    assert teams[0]["engagement_rate"] == 0
