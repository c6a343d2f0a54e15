from __future__ import annotations

import json
import logging
import shutil
from dataclasses import asdict
from datetime import date
from pathlib import Path

import typer

from prm import __version__
from prm.config import (
    WorkspaceConfig,
    WorkspaceError,
    ensure_workspaces_dir,
    load_workspace,
    set_current_workspace,
    workspace_config_path,
    write_workspace_config,
)
from prm.domain import rules
from prm.domain.rules import ValidationError
from prm.scoring.touchpoints import TwoWindowTrend, touchpoint_stats
from prm.services import backup, deals, directory, exports, relationships, reports, tasks, touch
from prm.services.backup import BackupError
from prm.services.deals import DealError
from prm.services.directory import DirectoryError
from prm.services.events import EventBus, EventLogger
from prm.services.relationships import RelationshipError
from prm.services.tasks import TaskError
from prm.services.touch import SubjectActivitySync, TouchError
from prm.services.utils import today_iso
from prm.store.sqlite import CollectionStore

app = typer.Typer(help="Partner relationship CLI")
workspace_app = typer.Typer(help="Workspace management")
schema_app = typer.Typer(help="Schema operations")
team_app = typer.Typer(help="Teams")
member_app = typer.Typer(help="Team members")
contact_app = typer.Typer(help="Contacts")
deal_app = typer.Typer(help="Deals and pipeline")
touch_app = typer.Typer(help="Touchpoints")
relationship_app = typer.Typer(help="Relationships between contacts")
task_app = typer.Typer(help="Tasks")
report_app = typer.Typer(help="Scores and reports")
export_app = typer.Typer(help="Exports")
import_app = typer.Typer(help="Imports")

app.add_typer(workspace_app, name="workspace")
app.add_typer(schema_app, name="schema")
app.add_typer(team_app, name="team")
app.add_typer(member_app, name="member")
app.add_typer(contact_app, name="contact")
app.add_typer(deal_app, name="deal")
app.add_typer(touch_app, name="touch")
app.add_typer(relationship_app, name="relationship")
app.add_typer(task_app, name="task")
app.add_typer(report_app, name="report")
app.add_typer(export_app, name="export")
app.add_typer(import_app, name="import")

DOMAIN_ERRORS = (
    ValidationError,
    DirectoryError,
    DealError,
    TouchError,
    RelationshipError,
    TaskError,
    BackupError,
)


class Context:
    def __init__(self, ws: WorkspaceConfig, events: bool = True) -> None:
        self.ws = ws
        self.store = CollectionStore(ws.store.sqlite_path)
        self.store.apply_schema()
        self.bus = EventBus()
        EventLogger(
            path=ws.events_path, workspace=ws.name, enabled=events and ws.events_enabled
        ).attach(self.bus)
        self.sync = SubjectActivitySync()
        self.trend_policy = TwoWindowTrend(window_days=ws.scoring.trend_window_days)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    events: bool = typer.Option(
        True, "--events/--no-events", help="Write events to the workspace log."
    ),
):
    if version:
        typer.echo(__version__)
        raise typer.Exit()
    ctx.obj = {"events": events}
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command("init")
def init() -> None:
    """Initialize directories for workspaces and outputs."""
    ensure_workspaces_dir()
    Path("data").mkdir(exist_ok=True)
    Path("exports").mkdir(exist_ok=True)
    typer.echo("Initialized partnerops directories.")


@workspace_app.command("add")
def workspace_add(
    name: str = typer.Argument(...),
    use: bool = typer.Option(True, "--use/--no-use", help="Set as current workspace."),
    force: bool = typer.Option(
        False, "--force", help="Overwrite existing workspace config if it exists."
    ),
    trend_window: int = typer.Option(30, "--trend-window", help="Days per trend comparison window."),
) -> None:
    config_path = workspace_config_path(name)
    if config_path.exists() and not force:
        raise typer.BadParameter(
            f"Workspace already exists: {config_path}. Use --force to overwrite."
        )
    config_path = write_workspace_config(name, trend_window)
    if use:
        set_current_workspace(name)
    typer.echo(f"Workspace created: {config_path}")


@workspace_app.command("use")
def workspace_use(name: str = typer.Argument(...)) -> None:
    if not workspace_config_path(name).exists():
        raise typer.BadParameter(f"Workspace config not found: {workspace_config_path(name)}")
    set_current_workspace(name)
    typer.echo(f"Active workspace: {name}")


@schema_app.command("apply")
def schema_apply(typer_ctx: typer.Context) -> None:
    ctx = _context(typer_ctx)
    typer.echo(f"Applied schema v{ctx.store.schema_version()} to {ctx.ws.store.sqlite_path}.")


# Teams and members


@team_app.command("add")
def team_add(
    typer_ctx: typer.Context,
    name: str = typer.Argument(...),
    region: str | None = typer.Option(None, "--region"),
    color: str | None = typer.Option(None, "--color"),
    team_id: str | None = typer.Option(None, "--id", help="Explicit team id (slug)."),
) -> None:
    ctx = _context(typer_ctx)
    try:
        team = directory.add_team(ctx.store, name, region, color, team_id, bus=ctx.bus)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created team: {team.team_id}")


@team_app.command("list")
def team_list(typer_ctx: typer.Context) -> None:
    ctx = _context(typer_ctx)
    for team in directory.list_teams(ctx.store):
        members = directory.list_members(ctx.store, team.team_id)
        typer.echo(f"{team.team_id} | {team.name} | {team.region or ''} | {len(members)} members")


@team_app.command("delete")
def team_delete(typer_ctx: typer.Context, team_id: str = typer.Argument(...)) -> None:
    ctx = _context(typer_ctx)
    try:
        directory.delete_team(ctx.store, team_id, bus=ctx.bus)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted team: {team_id}")


@member_app.command("add")
def member_add(
    typer_ctx: typer.Context,
    team_id: str = typer.Argument(...),
    name: str = typer.Argument(...),
    role: str = typer.Option(..., "--role", help="LoL, DM, PSM, AM or SA"),
    tier: int | None = typer.Option(None, "--tier"),
    geo: str | None = typer.Option(None, "--geo"),
    email: str | None = typer.Option(None, "--email"),
) -> None:
    ctx = _context(typer_ctx)
    try:
        member = directory.add_member(ctx.store, team_id, name, role, tier, geo, email, bus=ctx.bus)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Added team member: {member.member_id}")


@member_app.command("list")
def member_list(typer_ctx: typer.Context, team_id: str | None = typer.Option(None, "--team")) -> None:
    ctx = _context(typer_ctx)
    for member in directory.list_members(ctx.store, team_id):
        typer.echo(
            f"{member.member_id} | {member.team_id} | {member.name} | {member.role} | tier {member.tier} | {member.geo or ''}"
        )


@member_app.command("remove")
def member_remove(typer_ctx: typer.Context, member_id: str = typer.Argument(...)) -> None:
    ctx = _context(typer_ctx)
    try:
        directory.remove_member(ctx.store, member_id, bus=ctx.bus)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Removed team member: {member_id}")


# Contacts


@contact_app.command("add")
def contact_add(
    typer_ctx: typer.Context,
    name: str = typer.Argument(...),
    company: str | None = typer.Option(None, "--company"),
    title: str | None = typer.Option(None, "--title"),
    tier: int | None = typer.Option(None, "--tier"),
    email: str | None = typer.Option(None, "--email"),
    phone: str | None = typer.Option(None, "--phone"),
    team_id: str | None = typer.Option(None, "--team"),
    notes: str | None = typer.Option(None, "--notes"),
) -> None:
    ctx = _context(typer_ctx)
    try:
        contact = directory.add_contact(
            ctx.store,
            name,
            company=company,
            title=title,
            tier=tier,
            email=email,
            phone=phone,
            team_id=team_id,
            notes=notes,
            bus=ctx.bus,
        )
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created contact: {contact.contact_id}")


@contact_app.command("list")
def contact_list(typer_ctx: typer.Context, team_id: str | None = typer.Option(None, "--team")) -> None:
    ctx = _context(typer_ctx)
    for contact in directory.list_contacts(ctx.store, team_id):
        typer.echo(
            f"{contact.contact_id} | {contact.name} | {contact.company or ''} | tier {contact.tier} | {contact.last_touchpoint_on or '-'}"
        )


@contact_app.command("delete")
def contact_delete(typer_ctx: typer.Context, contact_id: str = typer.Argument(...)) -> None:
    ctx = _context(typer_ctx)
    try:
        directory.delete_contact(ctx.store, contact_id, bus=ctx.bus)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted contact: {contact_id}")


@contact_app.command("score")
def contact_score(
    typer_ctx: typer.Context,
    contact_id: str = typer.Argument(...),
    as_of: str | None = typer.Option(None, "--as-of", help="Score as of YYYY-MM-DD."),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    """Relationship score (1-10) and touchpoint statistics for one contact."""
    ctx = _context(typer_ctx)
    today = _as_of(as_of)
    contact = directory.get_contact(ctx.store, contact_id)
    if contact is None:
        _exit_with_error(f"Contact not found: {contact_id}")
    history = touch.list_touchpoints(ctx.store, contact_id=contact_id)
    result = reports.score_contact(contact, history, today, ctx.trend_policy)
    if json_output:
        typer.echo(json.dumps(asdict(result), indent=2, default=str))
        return
    stats = result.stats
    typer.echo(f"{result.name} (tier {result.tier}): {result.score}/10")
    typer.echo(
        f"total {stats.total} | this week {stats.this_week} | last {stats.last_touchpoint_on or 'never'}"
        f" | trend {stats.relationship_trend.value} | activity {stats.activity_score}"
    )


# Deals


@deal_app.command("add")
def deal_add(
    typer_ctx: typer.Context,
    name: str = typer.Argument(...),
    value: float = typer.Option(0.0, "--value"),
    stage: str = typer.Option("prequalified", "--stage"),
    contact_id: str | None = typer.Option(None, "--contact"),
    close_date: str | None = typer.Option(None, "--close"),
    probability: int | None = typer.Option(None, "--probability"),
    description: str | None = typer.Option(None, "--description"),
    referral_source: str | None = typer.Option(None, "--referral-source"),
    referral_team: str | None = typer.Option(None, "--referral-team"),
    referral_type: str | None = typer.Option(None, "--referral-type"),
    referral_notes: str | None = typer.Option(None, "--referral-notes"),
) -> None:
    ctx = _context(typer_ctx)
    try:
        deal = deals.add_deal(
            ctx.store,
            name,
            value,
            stage=stage,
            contact_id=contact_id,
            close_date=rules.parse_date(close_date, "close"),
            probability=probability,
            description=description,
            referral_source=referral_source,
            referral_team=referral_team,
            referral_type=referral_type,
            referral_notes=referral_notes,
            bus=ctx.bus,
        )
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created deal: {deal.deal_id}")


@deal_app.command("stage")
def deal_stage(
    typer_ctx: typer.Context,
    deal_id: str = typer.Argument(...),
    stage: str = typer.Argument(...),
    probability: int | None = typer.Option(None, "--probability", help="Override the stage default."),
) -> None:
    ctx = _context(typer_ctx)
    try:
        deal = deals.change_stage(ctx.store, deal_id, stage, probability, bus=ctx.bus)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"{deal.deal_id} -> {deal.stage} ({deal.probability}%)")


@deal_app.command("list")
def deal_list(
    typer_ctx: typer.Context,
    stage: str | None = typer.Option(None, "--stage"),
    by_priority: bool = typer.Option(False, "--by-priority", help="Rank open deals by priority."),
    as_of: str | None = typer.Option(None, "--as-of"),
) -> None:
    ctx = _context(typer_ctx)
    if by_priority:
        for deal, score in reports.prioritized_deals(ctx.store, _as_of(as_of), ctx.trend_policy):
            typer.echo(
                f"{score:>3} | {deal.deal_id} | {deal.name} | {deal.stage} | {deal.value:,.0f} | {deal.close_date or '-'}"
            )
        return
    try:
        rows = deals.list_deals(ctx.store, stage)
    except ValidationError as exc:
        _exit_with_error(str(exc))
    for deal in rows:
        typer.echo(
            f"{deal.deal_id} | {deal.name} | {deal.stage} | {deal.value:,.0f} | {deal.probability}% | {deal.close_date or '-'}"
        )


@deal_app.command("delete")
def deal_delete(typer_ctx: typer.Context, deal_id: str = typer.Argument(...)) -> None:
    ctx = _context(typer_ctx)
    try:
        deals.delete_deal(ctx.store, deal_id, bus=ctx.bus)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted deal: {deal_id}")


# Touchpoints


@touch_app.command("log")
def touch_log(
    typer_ctx: typer.Context,
    type_: str = typer.Option("other", "--type"),
    outcome: str = typer.Option("neutral", "--outcome"),
    contact_id: str | None = typer.Option(None, "--contact"),
    deal_id: str | None = typer.Option(None, "--deal"),
    member_id: str | None = typer.Option(None, "--member"),
    on: str | None = typer.Option(None, "--on", help="Date of the interaction (YYYY-MM-DD)."),
    note: str | None = typer.Option(None, "--note"),
    important: bool = typer.Option(False, "--important"),
    duration: int | None = typer.Option(None, "--duration", help="Minutes."),
    tags: str | None = typer.Option(None, "--tags", help="Comma-separated tags."),
    follow_up: str | None = typer.Option(None, "--follow-up", help="Follow-up date (YYYY-MM-DD)."),
) -> None:
    ctx = _context(typer_ctx)
    try:
        follow_up_on = rules.parse_date(follow_up, "follow-up")
        tp = touch.log_touchpoint(
            ctx.store,
            type=type_,
            outcome=outcome,
            occurred_on=rules.parse_date(on, "on"),
            contact_id=contact_id,
            deal_id=deal_id,
            team_member_id=member_id,
            notes=note,
            is_important=important,
            duration_minutes=duration,
            tags=tags,
            follow_up_required=follow_up_on is not None,
            follow_up_on=follow_up_on,
            bus=ctx.bus,
            sync=ctx.sync,
        )
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Logged touchpoint: {tp.touchpoint_id} (impact {tp.score_impact:+d})")


@touch_app.command("edit")
def touch_edit(
    typer_ctx: typer.Context,
    touchpoint_id: str = typer.Argument(...),
    outcome: str | None = typer.Option(None, "--outcome"),
    note: str | None = typer.Option(None, "--note"),
    important: bool | None = typer.Option(None, "--important/--not-important"),
) -> None:
    changes: dict[str, object] = {}
    if outcome is not None:
        changes["outcome"] = outcome
    if note is not None:
        changes["notes"] = note
    if important is not None:
        changes["is_important"] = important
    if not changes:
        raise typer.BadParameter("Nothing to change.")
    ctx = _context(typer_ctx)
    try:
        tp = touch.update_touchpoint(ctx.store, touchpoint_id, changes, bus=ctx.bus, sync=ctx.sync)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Updated touchpoint: {tp.touchpoint_id}")


@touch_app.command("delete")
def touch_delete(typer_ctx: typer.Context, touchpoint_id: str = typer.Argument(...)) -> None:
    ctx = _context(typer_ctx)
    try:
        touch.delete_touchpoint(ctx.store, touchpoint_id, bus=ctx.bus, sync=ctx.sync)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted touchpoint: {touchpoint_id}")


@touch_app.command("list")
def touch_list(
    typer_ctx: typer.Context,
    contact_id: str | None = typer.Option(None, "--contact"),
    deal_id: str | None = typer.Option(None, "--deal"),
    member_id: str | None = typer.Option(None, "--member"),
    type_: str | None = typer.Option(None, "--type"),
    outcome: str | None = typer.Option(None, "--outcome"),
    limit: int = typer.Option(20, "--limit"),
) -> None:
    ctx = _context(typer_ctx)
    rows = touch.list_touchpoints(
        ctx.store,
        contact_id=contact_id,
        deal_id=deal_id,
        team_member_id=member_id,
        type=type_,
        outcome=outcome,
    )
    for tp in rows[:limit]:
        who = directory.contact_name(ctx.store, tp.contact_id) if tp.contact_id else tp.team_member_id or tp.deal_id
        typer.echo(f"{tp.touchpoint_id} | {tp.occurred_on} | {tp.type} | {tp.outcome} | {who} | {tp.notes}")


@touch_app.command("stats")
def touch_stats(
    typer_ctx: typer.Context,
    contact_id: str | None = typer.Option(None, "--contact"),
    member_id: str | None = typer.Option(None, "--member"),
    as_of: str | None = typer.Option(None, "--as-of"),
) -> None:
    """Touchpoint statistics for a contact, a team member, or everything."""
    ctx = _context(typer_ctx)
    today = _as_of(as_of)
    history = touch.list_touchpoints(ctx.store, contact_id=contact_id, team_member_id=member_id)
    stats = touchpoint_stats(history, today, ctx.trend_policy)
    typer.echo(
        f"total {stats.total} | this week {stats.this_week} | this month {stats.this_month}"
        f" | avg gap {stats.average_gap_days}d | trend {stats.relationship_trend.value}"
        f" | activity {stats.activity_score}/100"
    )
    for type_, count in sorted(stats.type_breakdown.items()):
        typer.echo(f"{type_}: {count}")
    if stats.follow_ups_pending:
        typer.echo(f"follow-ups pending: {stats.follow_ups_pending}")


@touch_app.command("follow-ups")
def touch_follow_ups(typer_ctx: typer.Context, as_of: str | None = typer.Option(None, "--as-of")) -> None:
    ctx = _context(typer_ctx)
    items = touch.pending_follow_ups(ctx.store, _as_of(as_of))
    if not items:
        typer.echo("No pending follow-ups.")
        return
    for item in items:
        flag = "OVERDUE" if item.overdue else "due"
        typer.echo(f"{item.touchpoint.touchpoint_id} | {flag} {item.due_on or '-'} | {item.touchpoint.notes}")


@touch_app.command("complete")
def touch_complete(typer_ctx: typer.Context, touchpoint_id: str = typer.Argument(...)) -> None:
    ctx = _context(typer_ctx)
    try:
        touch.complete_follow_up(ctx.store, touchpoint_id, bus=ctx.bus)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Follow-up completed: {touchpoint_id}")


# Relationships and tasks


@relationship_app.command("add")
def relationship_add(
    typer_ctx: typer.Context,
    from_id: str = typer.Argument(...),
    to_id: str = typer.Argument(...),
    kind: str = typer.Option("reports-to", "--kind"),
    strength: str | None = typer.Option(None, "--strength"),
    notes: str | None = typer.Option(None, "--notes"),
) -> None:
    ctx = _context(typer_ctx)
    try:
        rel = relationships.add_relationship(ctx.store, from_id, to_id, kind, strength, notes, bus=ctx.bus)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created relationship: {rel.relationship_id}")


@relationship_app.command("list")
def relationship_list(typer_ctx: typer.Context, entity_id: str | None = typer.Option(None, "--for")) -> None:
    ctx = _context(typer_ctx)
    for rel in relationships.list_relationships(ctx.store, entity_id):
        typer.echo(f"{rel.relationship_id} | {rel.from_id} -> {rel.to_id} | {rel.kind} | {rel.strength or '-'}")
    if entity_id:
        typer.echo(f"Strongest link: {relationships.strongest_link(ctx.store, entity_id) or '-'}")


@relationship_app.command("delete")
def relationship_delete(typer_ctx: typer.Context, relationship_id: str = typer.Argument(...)) -> None:
    ctx = _context(typer_ctx)
    try:
        relationships.delete_relationship(ctx.store, relationship_id, bus=ctx.bus)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted relationship: {relationship_id}")


@task_app.command("add")
def task_add(
    typer_ctx: typer.Context,
    title: str = typer.Argument(...),
    due: str | None = typer.Option(None, "--due"),
    contact_id: str | None = typer.Option(None, "--contact"),
    deal_id: str | None = typer.Option(None, "--deal"),
) -> None:
    ctx = _context(typer_ctx)
    try:
        task = tasks.add_task(
            ctx.store,
            title,
            due_on=rules.parse_date(due, "due"),
            contact_id=contact_id,
            deal_id=deal_id,
            bus=ctx.bus,
        )
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created task: {task.task_id}")


@task_app.command("done")
def task_done(typer_ctx: typer.Context, task_id: str = typer.Argument(...)) -> None:
    ctx = _context(typer_ctx)
    try:
        tasks.set_status(ctx.store, task_id, "done", bus=ctx.bus)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Completed task: {task_id}")


@task_app.command("list")
def task_list(typer_ctx: typer.Context, status: str | None = typer.Option("open", "--status")) -> None:
    ctx = _context(typer_ctx)
    try:
        rows = tasks.list_tasks(ctx.store, status)
    except ValidationError as exc:
        _exit_with_error(str(exc))
    for task in rows:
        typer.echo(f"{task.task_id} | {task.status} | {task.due_on or '-'} | {task.title}")


# Reports


@report_app.command("attribution")
def report_attribution(typer_ctx: typer.Context, json_output: bool = typer.Option(False, "--json")) -> None:
    """Referral attribution by contact, team and referral type."""
    ctx = _context(typer_ctx)
    report = reports.attribution_report(ctx.store)
    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        return
    summary = report.summary
    typer.echo(
        f"Referred deals: {summary.total_referred_deals} | value {summary.total_referred_value:,.0f}"
        f" | average {summary.average_referral_value:,.0f}"
    )
    top = directory.contact_name(ctx.store, summary.top_referrer) if summary.top_referrer else "-"
    typer.echo(f"Top referrer: {top} | top team: {summary.top_referral_team or '-'}")
    for title, groups in (("Type", report.by_type), ("Team", report.by_team)):
        for key, group in groups.items():
            typer.echo(
                f"{title} {key}: {group.deal_count} deals | {group.total_value:,.0f}"
                f" | won {group.won_value:,.0f} | win rate {group.win_rate:.0f}%"
            )


@report_app.command("pipeline")
def report_pipeline(
    typer_ctx: typer.Context,
    as_of: str | None = typer.Option(None, "--as-of"),
    json_output: bool = typer.Option(False, "--json"),
) -> None:
    ctx = _context(typer_ctx)
    report = reports.pipeline_report(ctx.store, _as_of(as_of))
    if json_output:
        typer.echo(json.dumps(asdict(report), indent=2, default=str))
        return
    stats = report.stats
    typer.echo(
        f"Total {stats.total_value:,.0f} | weighted {stats.weighted_value:,.0f}"
        f" | avg {stats.avg_deal_size:,.0f} | close rate {stats.close_rate}%"
        f" | quarter forecast {stats.quarterly_forecast:,.0f}"
    )
    for column in report.board:
        typer.echo(f"{column.stage.label}: {column.deal_count} | {column.total_value:,.0f}")


@report_app.command("scores")
def report_scores(
    typer_ctx: typer.Context,
    members: bool = typer.Option(False, "--members", help="Score team members instead of contacts."),
    as_of: str | None = typer.Option(None, "--as-of"),
) -> None:
    ctx = _context(typer_ctx)
    today = _as_of(as_of)
    if members:
        rows = reports.member_scores(ctx.store, today, ctx.trend_policy)
    else:
        rows = reports.contact_scores(ctx.store, today, ctx.trend_policy)
    for row in rows:
        typer.echo(f"{row.score:>2}/10 | {row.subject_id} | {row.name} | tier {row.tier} | {row.stats.relationship_trend.value}")


@report_app.command("influence")
def report_influence(typer_ctx: typer.Context, json_output: bool = typer.Option(False, "--json")) -> None:
    """Contacts ranked by title seniority and network reach."""
    ctx = _context(typer_ctx)
    profiles = reports.influence_report(ctx.store)
    if json_output:
        typer.echo(json.dumps([asdict(profile) for profile in profiles], indent=2))
        return
    for profile in profiles:
        typer.echo(
            f"{profile.score:>4.1f} {profile.level.value:<7} | {profile.contact_id} | {profile.name}"
            f" | {profile.title or '-'} | decision {profile.decision_power} | links {profile.network_size}"
        )


@report_app.command("teams")
def report_teams(
    typer_ctx: typer.Context,
    as_of: str | None = typer.Option(None, "--as-of"),
    json_output: bool = typer.Option(False, "--json"),
) -> None:
    """Win rate and engagement per team."""
    ctx = _context(typer_ctx)
    rows = reports.team_report(ctx.store, _as_of(as_of))
    if json_output:
        typer.echo(json.dumps([asdict(row) for row in rows], indent=2))
        return
    for row in rows:
        typer.echo(
            f"{row.team_id} | {row.name} | {row.deal_count} deals | {row.total_value:,.0f}"
            f" | avg {row.avg_deal_size:,.0f} | win rate {row.win_rate}% | engagement {row.engagement_rate}%"
        )


# Exports


@export_app.command("json")
def export_json(typer_ctx: typer.Context, out: str = typer.Option(..., "--out")) -> None:
    ctx = _context(typer_ctx)
    snapshot = backup.write_snapshot(ctx.store, Path(out))
    typer.echo(f"Exported backup to {out} ({sum(snapshot['stats'].values())} records)")


@export_app.command("csv")
def export_csv(
    typer_ctx: typer.Context,
    out: str = typer.Option(..., "--out", help="Output directory."),
) -> None:
    ctx = _context(typer_ctx)
    paths = exports.export_csv_tables(ctx.store, Path(out))
    typer.echo(f"Exported {len(paths)} CSV files to {out}")


@export_app.command("excel")
def export_excel(typer_ctx: typer.Context, out: str = typer.Option(..., "--out")) -> None:
    ctx = _context(typer_ctx)
    exports.export_excel(ctx.store, Path(out))
    typer.echo(f"Exported Excel to {out}")


@import_app.command("json")
def import_json(
    typer_ctx: typer.Context,
    path: str = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", help="Replace all data without asking."),
) -> None:
    ctx = _context(typer_ctx)
    try:
        snapshot = backup.read_snapshot(Path(path))
        backup.validate_snapshot(snapshot)
    except BackupError as exc:
        _exit_with_error(str(exc))
    if not yes:
        typer.confirm("This will replace ALL current data. Continue?", abort=True)
    try:
        summary = backup.import_snapshot(ctx.store, snapshot, bus=ctx.bus)
    except BackupError as exc:
        _exit_with_error(str(exc))
    counts = ", ".join(f"{name} {count}" for name, count in summary.counts.items())
    typer.echo(f"Imported {path}: {counts}")


@import_app.command("history")
def import_history(typer_ctx: typer.Context) -> None:
    """Store snapshots taken before each import or restore."""
    ctx = _context(typer_ctx)
    for item in ctx.store.list_snapshots():
        typer.echo(f"{item['snapshot_id']} | {item['created_at']} | {item['reason']}")


@import_app.command("restore")
def import_restore(
    typer_ctx: typer.Context,
    snapshot_id: str = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", help="Replace all data without asking."),
) -> None:
    ctx = _context(typer_ctx)
    if not yes:
        typer.confirm("This will replace ALL current data. Continue?", abort=True)
    try:
        backup.restore_store_snapshot(ctx.store, snapshot_id, bus=ctx.bus)
    except BackupError as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Restored snapshot: {snapshot_id}")


@app.command("snapshot")
def snapshot(typer_ctx: typer.Context) -> None:
    ctx = _context(typer_ctx)
    snapshot_dir = Path("data") / "snapshots" / today_iso()
    snapshot_dir.mkdir(parents=True, exist_ok=True)
    if ctx.ws.store.sqlite_path.exists():
        shutil.copy2(ctx.ws.store.sqlite_path, snapshot_dir / "local.sqlite")
    exports.export_csv_tables(ctx.store, snapshot_dir)
    typer.echo(f"Snapshot created at {snapshot_dir}")


def _load_workspace() -> WorkspaceConfig:
    try:
        return load_workspace()
    except WorkspaceError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc


def _context(typer_ctx: typer.Context) -> Context:
    options = typer_ctx.obj or {}
    return Context(_load_workspace(), events=options.get("events", True))


def _as_of(value: str | None) -> date:
    try:
        return rules.parse_date(value, "as-of") or date.today()
    except ValidationError as exc:
        _exit_with_error(str(exc))


def _exit_with_error(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
