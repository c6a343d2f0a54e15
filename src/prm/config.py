from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

WORKSPACES_DIR = Path("workspaces")
CURRENT_WORKSPACE_FILE = WORKSPACES_DIR / ".current"
WORKSPACE_FILENAME = "workspace.yaml"
EVENTS_FILENAME = "events.ndjson"
DEFAULT_TREND_WINDOW_DAYS = 30


@dataclass(frozen=True)
class StoreConfig:
    sqlite_path: Path


@dataclass(frozen=True)
class ScoringConfig:
    trend_window_days: int = DEFAULT_TREND_WINDOW_DAYS


@dataclass(frozen=True)
class WorkspaceConfig:
    name: str
    store: StoreConfig
    scoring: ScoringConfig
    events_enabled: bool
    path: Path

    @property
    def events_path(self) -> Path:
        return self.path / EVENTS_FILENAME


class WorkspaceError(RuntimeError):
    pass


def ensure_workspaces_dir() -> None:
    WORKSPACES_DIR.mkdir(parents=True, exist_ok=True)


def set_current_workspace(name: str) -> None:
    ensure_workspaces_dir()
    CURRENT_WORKSPACE_FILE.write_text(f"{name}\n", encoding="utf-8")


def get_current_workspace_name() -> str:
    if not CURRENT_WORKSPACE_FILE.exists():
        raise WorkspaceError("No active workspace. Run `prm workspace use <name>`.")
    return CURRENT_WORKSPACE_FILE.read_text(encoding="utf-8").strip()


def workspace_path(name: str) -> Path:
    return WORKSPACES_DIR / name


def workspace_config_path(name: str) -> Path:
    return workspace_path(name) / WORKSPACE_FILENAME


def load_workspace(name: str | None = None) -> WorkspaceConfig:
    if name is None:
        name = get_current_workspace_name()
    config_path = workspace_config_path(name)
    if not config_path.exists():
        raise WorkspaceError(f"Workspace config not found: {config_path}")
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise WorkspaceError(f"Workspace config must be a mapping: {config_path}")
    return WorkspaceConfig(
        name=name,
        store=_parse_store(data.get("store"), config_path),
        scoring=_parse_scoring(data.get("scoring")),
        events_enabled=_parse_events(data.get("events")),
        path=config_path.parent,
    )


def write_workspace_config(name: str, trend_window_days: int = DEFAULT_TREND_WINDOW_DAYS) -> Path:
    ensure_workspaces_dir()
    ws_dir = workspace_path(name)
    ws_dir.mkdir(parents=True, exist_ok=True)
    config = {
        "workspace": name,
        "store": {"sqlite_path": "./local.sqlite"},
        "events": {"enabled": True},
        "scoring": {"trend_window_days": trend_window_days},
    }
    config_path = workspace_config_path(name)
    config_path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return config_path


def _parse_store(store_data: Any, config_path: Path) -> StoreConfig:
    if not isinstance(store_data, dict):
        raise WorkspaceError("Invalid workspace store configuration.")
    sqlite_path_raw = store_data.get("sqlite_path")
    if not sqlite_path_raw:
        raise WorkspaceError("Workspace store.sqlite_path is required.")
    sqlite_path = _resolve_sqlite_path(sqlite_path_raw, config_path)
    if sqlite_path is None:
        raise WorkspaceError("Workspace store.sqlite_path must be a string.")
    return StoreConfig(sqlite_path=sqlite_path)


def _resolve_sqlite_path(sqlite_path_raw: Any, config_path: Path) -> Path | None:
    if not isinstance(sqlite_path_raw, str):
        return None
    raw_path = Path(sqlite_path_raw)
    if raw_path.is_absolute():
        return raw_path
    workspace_dir = config_path.parent
    if raw_path.parts and raw_path.parts[0] == WORKSPACES_DIR.name:
        # Paths written relative to the repo root, e.g. "workspaces/demo/local.sqlite".
        return (workspace_dir.parent.parent / raw_path).resolve()
    return (workspace_dir / raw_path).resolve()


def _parse_scoring(scoring_data: Any) -> ScoringConfig:
    if scoring_data is None:
        return ScoringConfig()
    if not isinstance(scoring_data, dict):
        raise WorkspaceError("Invalid workspace scoring configuration.")
    window = scoring_data.get("trend_window_days", DEFAULT_TREND_WINDOW_DAYS)
    if isinstance(window, bool) or not isinstance(window, int) or window <= 0:
        raise WorkspaceError("Workspace scoring.trend_window_days must be a positive integer.")
    return ScoringConfig(trend_window_days=window)


def _parse_events(events_data: Any) -> bool:
    if events_data is None:
        return True
    if not isinstance(events_data, dict):
        raise WorkspaceError("Invalid workspace events configuration.")
    enabled = events_data.get("enabled", True)
    if not isinstance(enabled, bool):
        raise WorkspaceError("Workspace events.enabled must be true or false.")
    return enabled
