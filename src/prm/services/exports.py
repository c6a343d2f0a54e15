from __future__ import annotations

import csv
from collections.abc import Iterable
from pathlib import Path

from openpyxl import Workbook

from prm.domain.models import Contact, Deal, Team, Touchpoint
from prm.domain.stages import DealStage
from prm.services import directory
from prm.services.repository import flatten, load_grouped, load_list
from prm.services.utils import UNKNOWN_CONTACT
from prm.store.sqlite import CollectionStore

DEAL_HEADERS = [
    "Deal Name",
    "Contact",
    "Company",
    "Stage",
    "Value",
    "Probability",
    "Close Date",
    "Description",
    "Referral Source",
    "Referral Type",
]
CONTACT_HEADERS = ["Name", "Title", "Company", "Tier", "Team", "Email", "Phone", "Last Contact", "Notes"]
TOUCHPOINT_HEADERS = [
    "Date",
    "Type",
    "Outcome",
    "Contact",
    "Deal",
    "Team Member",
    "Important",
    "Score Impact",
    "Notes",
]

SHEETS = ["teams", "contacts", "team_members", "deals", "touchpoints", "tasks", "relationships"]


def deal_rows(store: CollectionStore) -> list[list[object]]:
    contacts = {c.contact_id: c for c in directory.list_contacts(store)}
    rows = []
    for deal in load_list(store, "deals", Deal):
        contact = contacts.get(deal.contact_id or "")
        referrer = contacts.get(deal.referral_source or "")
        try:
            stage = DealStage(deal.stage).label
        except ValueError:
            stage = deal.stage
        rows.append(
            [
                deal.name,
                contact.name if contact else UNKNOWN_CONTACT,
                (contact.company or "") if contact else "Unknown",
                stage,
                deal.value,
                deal.probability,
                deal.close_date.isoformat() if deal.close_date else "",
                deal.description or "",
                referrer.name if referrer else (deal.referral_source or ""),
                deal.referral_type or "",
            ]
        )
    return rows


def contact_rows(store: CollectionStore) -> list[list[object]]:
    teams = {team.team_id: team for team in directory.list_teams(store)}
    rows = []
    for contact in flatten(load_grouped(store, "contacts", Contact)):
        team: Team | None = teams.get(contact.team_id or "")
        rows.append(
            [
                contact.name,
                contact.title or "",
                contact.company or "",
                contact.tier,
                team.name if team else (contact.team_id or ""),
                contact.email or "",
                contact.phone or "",
                contact.last_touchpoint_on.isoformat() if contact.last_touchpoint_on else "",
                contact.notes or "",
            ]
        )
    return rows


def touchpoint_rows(store: CollectionStore) -> list[list[object]]:
    contacts = {c.contact_id: c.name for c in directory.list_contacts(store)}
    members = {m.member_id: m.name for m in directory.list_members(store)}
    deals = {d.deal_id: d.name for d in load_list(store, "deals", Deal)}
    rows = []
    for tp in load_list(store, "touchpoints", Touchpoint):
        rows.append(
            [
                tp.occurred_on.isoformat(),
                tp.type,
                tp.outcome,
                contacts.get(tp.contact_id, UNKNOWN_CONTACT) if tp.contact_id else "",
                deals.get(tp.deal_id, "Unknown Deal") if tp.deal_id else "",
                members.get(tp.team_member_id, UNKNOWN_CONTACT) if tp.team_member_id else "",
                "yes" if tp.is_important else "no",
                tp.score_impact if tp.score_impact is not None else "",
                tp.notes,
            ]
        )
    return rows


def export_csv_tables(store: CollectionStore, out_dir: Path) -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, headers, rows in (
        ("deals", DEAL_HEADERS, deal_rows(store)),
        ("contacts", CONTACT_HEADERS, contact_rows(store)),
        ("touchpoints", TOUCHPOINT_HEADERS, touchpoint_rows(store)),
    ):
        csv_path = out_dir / f"{name}.csv"
        with csv_path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            writer.writerow(headers)
            writer.writerows(rows)
        written.append(csv_path)
    return written


def export_excel(store: CollectionStore, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    wb.remove(wb.active)

    for name in SHEETS:
        ws = wb.create_sheet(title=name)
        _write_sheet(ws, _records(store, name))

    wb.save(out_path)


def _records(store: CollectionStore, name: str) -> list[dict[str, object]]:
    payload = store.get_all(name)
    if name == "teams":
        return list(payload.values())
    if isinstance(payload, dict):
        return [record for records in payload.values() for record in records]
    return payload


def _write_sheet(ws, rows: Iterable[dict[str, object]]) -> None:
    rows = list(rows)
    if not rows:
        return
    headers = list(dict.fromkeys(key for row in rows for key in row))
    ws.append(headers)
    for row in rows:
        ws.append([_cell(row.get(h)) for h in headers])


def _cell(value: object) -> object:
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    if isinstance(value, dict):
        return str(value)
    return value

