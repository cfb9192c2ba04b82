"""CLI entry point for cubetimer.

Uses Click to expose the ``cubetimer`` command group.  Every command opens
the session store, performs one operation and prints the outcome.
"""

from __future__ import annotations

import logging
import math
import sys
from pathlib import Path
from typing import Callable, TypeVar

import click

import cubetimer
from cubetimer.core.config import INSPECTION_TIMES_SEC
from cubetimer.core.formatting import format_stat, format_time, parse_time_string
from cubetimer.core.solve import Penalty, Solve, effective_time
from cubetimer.core.stats import (
    RecordKind,
    StatisticsResult,
    compute_statistics,
    lowest_bests,
    solve_count_label,
    standard_deviation,
    time_distribution,
    times_of,
)
from cubetimer.core.store import SessionStore, StoreError

T = TypeVar("T")

_PENALTY_CHOICES = click.Choice(["none", "+2", "dnf"], case_sensitive=False)
_INSPECTION_CHOICES = click.Choice([str(t) for t in sorted(INSPECTION_TIMES_SEC)])


def _run(action: Callable[[], T]) -> T:
    """Execute *action*, converting store and validation errors to a CLI error.

    The message is printed to stderr and the process exits with code 1.
    """
    try:
        return action()
    except (StoreError, ValueError) as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)


def _open_store(ctx: click.Context) -> SessionStore:
    return _run(lambda: SessionStore(config_dir=ctx.obj["config_dir"]))


def _solve_time(solve: Solve) -> str:
    text = format_time(effective_time(solve))
    if solve.penalty == Penalty.PLUS_TWO:
        text += "+"
    return text


def _stats_lines(stats: StatisticsResult) -> list[str]:
    lines = [f"single: {format_stat(stats.current_single)} (best {format_stat(stats.best_single)})"]
    for kind in RecordKind:
        if kind == RecordKind.SINGLE:
            continue
        lines.append(
            f"{kind.value}: {format_stat(stats.current(kind))} (best {format_stat(stats.best(kind))})"
        )
    return lines


@click.group()
@click.version_option(version=cubetimer.__version__, prog_name="cubetimer")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="CUBETIMER_CONFIG_DIR",
    default=None,
    help="Directory holding cubetimer.json (default ~/.config/cubetimer).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_dir: Path | None, verbose: bool) -> None:
    """cubetimer: speedcube practice sessions and WCA-style statistics."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir


@cli.command()
@click.argument("time_text", metavar="TIME")
@click.option("--scramble", default="", help="Scramble used for the solve.")
@click.option("--penalty", type=_PENALTY_CHOICES, default="none", show_default=True)
@click.option("--notes", default=None, help="Free-form notes.")
@click.pass_context
def add(ctx: click.Context, time_text: str, scramble: str, penalty: str, notes: str | None) -> None:
    """Record a solve of TIME (e.g. 12.34, 1:05.20 or DNF) in the current session."""
    parsed = parse_time_string(time_text)
    if parsed is None:
        raise click.BadParameter(f"cannot parse {time_text!r} as a time", param_hint="TIME")
    penalty_value = Penalty.parse(penalty)
    if math.isinf(parsed):
        parsed, penalty_value = 0.0, Penalty.DNF

    store = _open_store(ctx)
    solve, stats, events = _run(
        lambda: store.record_solve(int(parsed), scramble, penalty_value, notes)
    )
    click.echo(f"Solve #{solve.id}: {_solve_time(solve)}")
    for line in _stats_lines(stats):
        click.echo(line)
    for event in events:
        click.echo(f"New personal best! {event.kind.label}: {format_time(event.time_ms)}")


@cli.command(name="list")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Show only the newest N.")
@click.pass_context
def list_solves(ctx: click.Context, limit: int | None) -> None:
    """List the solves of the current session, newest first."""
    store = _open_store(ctx)
    session = store.current_session()
    solves = list(reversed(store.solves(session.id)))
    if limit is not None:
        solves = solves[:limit]
    if not solves:
        click.echo(f"No solves in {session.name}")
        return
    for solve in solves:
        line = f"#{solve.id:<5} {_solve_time(solve):>10}"
        if solve.scramble:
            line += f"  {solve.scramble}"
        if solve.notes:
            line += f"  [{solve.notes}]"
        click.echo(line)


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show current-session averages and all-time bests."""
    store = _open_store(ctx)
    session = store.current_session()
    session_solves = store.solves(session.id)
    result = compute_statistics(session_solves, store.all_solves())
    click.echo(f"{session.name}: {solve_count_label(session_solves)} solves")
    for line in _stats_lines(result):
        click.echo(line)
    times = times_of(session_solves)
    click.echo(f"std dev: {format_stat(standard_deviation(times))}")
    dist = time_distribution(times)
    click.echo(
        f"median: {format_stat(dist.median)}  "
        f"q1: {format_stat(dist.q1)}  q3: {format_stat(dist.q3)}"
    )


@cli.command()
@click.argument("solve_id", type=int)
@click.argument("penalty", type=_PENALTY_CHOICES)
@click.pass_context
def penalty(ctx: click.Context, solve_id: int, penalty: str) -> None:
    """Set the PENALTY (none, +2 or dnf) of solve SOLVE_ID."""
    store = _open_store(ctx)
    solve = _run(lambda: store.update_penalty(solve_id, Penalty.parse(penalty)))
    click.echo(f"Solve #{solve.id}: {_solve_time(solve)}")


@cli.command()
@click.argument("solve_id", type=int)
@click.argument("text")
@click.pass_context
def note(ctx: click.Context, solve_id: int, text: str) -> None:
    """Attach TEXT as the notes of solve SOLVE_ID."""
    store = _open_store(ctx)
    solve = _run(lambda: store.update_notes(solve_id, text or None))
    click.echo(f"Solve #{solve.id} updated")


@cli.command()
@click.argument("solve_id", type=int)
@click.pass_context
def delete(ctx: click.Context, solve_id: int) -> None:
    """Delete solve SOLVE_ID."""
    store = _open_store(ctx)
    _run(lambda: store.delete_solve(solve_id))
    click.echo(f"Solve #{solve_id} deleted")


@cli.command()
@click.pass_context
def pbs(ctx: click.Context) -> None:
    """Show personal bests."""
    store = _open_store(ctx)
    bests = lowest_bests(store.personal_bests())
    if not bests:
        click.echo("No personal bests yet")
        return
    for kind in RecordKind:
        if kind in bests:
            click.echo(f"{kind.label}: {format_time(bests[kind])}")


# ---------------------------------------------------------------------------
# sessions
# ---------------------------------------------------------------------------


@cli.group()
def session() -> None:
    """Manage practice sessions."""


@session.command(name="new")
@click.argument("name")
@click.option("--case", "case_id", default=None, help="Make a case-practice session for CASE_ID.")
@click.option("--inspection/--no-inspection", default=None, help="Override the inspection default.")
@click.option("--inspection-time", type=_INSPECTION_CHOICES, default=None)
@click.pass_context
def session_new(
    ctx: click.Context,
    name: str,
    case_id: str | None,
    inspection: bool | None,
    inspection_time: str | None,
) -> None:
    """Create session NAME and switch to it."""
    store = _open_store(ctx)
    created = _run(
        lambda: store.create_session(
            name,
            "case" if case_id is not None else "full",
            case_id=case_id,
            use_inspection=inspection,
            inspection_time=int(inspection_time) if inspection_time is not None else None,
        )
    )
    click.echo(f"Session created: {created.name} ({created.id})")


@session.command(name="list")
@click.pass_context
def session_list(ctx: click.Context) -> None:
    """List sessions; the current one is marked with *."""
    store = _open_store(ctx)
    current = store.current_session()
    for item in store.sessions():
        marker = "*" if item.id == current.id else " "
        config = item.timer_config()
        inspection = f"{config.inspection_time_sec}s inspection" if config.use_inspection else "no inspection"
        click.echo(
            f"{marker} {item.id}  {item.name}  [{item.kind}, {inspection}]  "
            f"{store.solve_count(item.id)} solves"
        )


@session.command(name="use")
@click.argument("session_id")
@click.pass_context
def session_use(ctx: click.Context, session_id: str) -> None:
    """Switch to session SESSION_ID."""
    store = _open_store(ctx)
    chosen = _run(lambda: store.set_current_session(session_id))
    click.echo(f"Current session: {chosen.name}")


@session.command(name="inspection")
@click.argument("session_id")
@click.option("--on/--off", "use_inspection", required=True)
@click.option("--time", "inspection_time", type=_INSPECTION_CHOICES, default="15", show_default=True)
@click.pass_context
def session_inspection(
    ctx: click.Context, session_id: str, use_inspection: bool, inspection_time: str
) -> None:
    """Change the inspection settings of SESSION_ID."""
    store = _open_store(ctx)
    updated = _run(lambda: store.update_inspection(session_id, use_inspection, int(inspection_time)))
    state = f"{updated.inspection_time}s" if updated.use_inspection else "off"
    click.echo(f"Inspection for {updated.name}: {state}")


@session.command(name="delete")
@click.argument("session_id")
@click.pass_context
def session_delete(ctx: click.Context, session_id: str) -> None:
    """Delete SESSION_ID and its solves."""
    store = _open_store(ctx)
    _run(lambda: store.delete_session(session_id))
    click.echo(f"Session {session_id} deleted")
