from __future__ import annotations

from datetime import date
from uuid import uuid4

UNKNOWN_CONTACT = "Unknown Contact"


def today_iso() -> str:
    return date.today().isoformat()


def new_id() -> str:
    return str(uuid4())


def parse_tags(tags: str | list[str] | None) -> list[str]:
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    return [tag.strip() for tag in tags if tag.strip()]
