import csv
from datetime import date
from pathlib import Path

from openpyxl import load_workbook

from prm.services import deals, directory, exports, touch
from prm.store.sqlite import CollectionStore


def _store(tmp_path: Path) -> CollectionStore:
    store = CollectionStore(tmp_path / "test.sqlite")
    store.apply_schema()
    return store


def _read(path: Path) -> list[list[str]]:
    with path.open(newline="", encoding="utf-8") as handle:
        return list(csv.reader(handle))


def test_csv_tables(tmp_path: Path) -> None:
    store = _store(tmp_path)
    ada = directory.add_contact(store, "Ada", company="Analytical Engines", tier=1)
    deals.add_deal(store, "Acme", 1000, stage="legal", contact_id=ada.contact_id, close_date=date(2026, 12, 1))
    deals.add_deal(store, "Orphan", 50, contact_id="gone")
    touch.log_touchpoint(store, type="call", contact_id=ada.contact_id, occurred_on=date(2026, 10, 19), notes="intro")

    paths = exports.export_csv_tables(store, tmp_path / "out")
    assert [p.name for p in paths] == ["deals.csv", "contacts.csv", "touchpoints.csv"]

    deal_rows = _read(tmp_path / "out" / "deals.csv")
    assert deal_rows[0] == exports.DEAL_HEADERS
    assert deal_rows[1][:7] == ["Acme", "Ada", "Analytical Engines", "Legal Review", "1000.0", "75", "2026-12-01"]
    assert deal_rows[2][1:3] == ["Unknown Contact", "Unknown"]

    contact_rows = _read(tmp_path / "out" / "contacts.csv")
    assert contact_rows[1][:4] == ["Ada", "", "Analytical Engines", "1"]

    touch_rows = _read(tmp_path / "out" / "touchpoints.csv")
    assert touch_rows[1] == ["2026-10-19", "call", "neutral", "Ada", "", "", "no", "3", "intro"]


def test_excel_has_a_sheet_per_collection(tmp_path: Path) -> None:
    store = _store(tmp_path)
    directory.add_team(store, "West", team_id="west")
    directory.add_contact(store, "Ada", team_id="west")
    touch.log_touchpoint(store, type="email", contact_id="c1", tags="exec,renewal")

    out = tmp_path / "prm.xlsx"
    exports.export_excel(store, out)

    wb = load_workbook(out)
    assert wb.sheetnames == exports.SHEETS
    contacts = list(wb["contacts"].values)
    assert "name" in contacts[0]
    assert contacts[1][contacts[0].index("name")] == "Ada"
    touchpoints = list(wb["touchpoints"].values)
    assert touchpoints[1][touchpoints[0].index("tags")] == "exec, renewal"
    assert wb["deals"].max_row == 1
