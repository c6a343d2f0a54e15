from __future__ import annotations

import json
import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[[str, dict[str, Any]], None]

WILDCARD = "*"


@dataclass
class EventBus:
    """Synchronous publish/subscribe.

    ``emit`` calls every handler for the event (plus wildcard handlers) before
    returning. Handlers must not rely on the order in which independent
    subscribers run.
    """

    _handlers: dict[str, list[Handler]] = field(default_factory=lambda: defaultdict(list))

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return unsubscribe

    def emit(self, event: str, payload: dict[str, Any] | None = None) -> None:
        payload = payload or {}
        handlers = list(self._handlers.get(event, ())) + list(self._handlers.get(WILDCARD, ()))
        logger.debug("Emitting %s to %d handler(s)", event, len(handlers))
        for handler in handlers:
            handler(event, payload)


def emit(bus: EventBus | None, event: str, payload: dict[str, Any]) -> None:
    if bus is not None:
        bus.emit(event, payload)


@dataclass
class EventLogger:
    path: Path
    workspace: str
    enabled: bool = True

    def attach(self, bus: EventBus) -> Callable[[], None]:
        return bus.on(WILDCARD, self.handle)

    def handle(self, event: str, payload: dict[str, Any]) -> None:
        entity_type, _, event_type = event.partition(":")
        self.log(
            event_type=event_type or event,
            entity_type=entity_type,
            external_id=str(payload.get("id", "")),
            changed_fields=payload.get("changed_fields"),
        )

    def log(
        self,
        *,
        event_type: str,
        entity_type: str,
        external_id: str,
        changed_fields: Iterable[str] | None = None,
    ) -> None:
        if not self.enabled:
            return
        entry = {
            "ts": datetime.now(UTC).replace(microsecond=0).isoformat(),
            "workspace": self.workspace,
            "entity_type": entity_type,
            "external_id": external_id,
            "event_type": event_type,
            "changed_fields": list(changed_fields or []),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry) + "\n")
