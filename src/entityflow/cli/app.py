"""Typer CLI wiring entityflow services."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from collections.abc import Coroutine
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from entityflow.config import AppSettings
from entityflow.domain import Command, QueryFilter, TransitionResult
from entityflow.exceptions import EntityFlowError
from entityflow.providers import authorize
from entityflow.spec import TransitionGraph

from .deps import get_container, load_env_file

T = TypeVar("T")

app = typer.Typer(help="entityflow command-line interface")
spec_app = typer.Typer(help="Specification utilities")
app.add_typer(spec_app, name="spec")
console = Console()


@app.callback()
def main_callback() -> None:
    """Load .env and configure logging before any command runs."""

    load_env_file()
    logging.basicConfig(
        level=AppSettings.from_env().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_data(value: str | None) -> dict[str, Any] | None:
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"--data must be valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise typer.BadParameter("--data must be a JSON object")
    return parsed


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except EntityFlowError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc


def _dumps(value: Any) -> str:
    return json.dumps(value, indent=2, sort_keys=True, default=str)


@app.command("show-settings")
def show_settings() -> None:
    """Print the resolved application settings."""

    container = get_container()
    settings = container.settings
    typer.echo("Environment:\t" + settings.environment)
    typer.echo("Storage:\t" + settings.storage_backend.value)
    typer.echo("Database URL:\t" + settings.database_url)
    typer.echo("Data Root:\t" + str(settings.data_root))
    typer.echo("Specifications:\t" + ", ".join(container.spec_registry.ids()))


@spec_app.command("list")
def spec_list() -> None:
    """List registered specifications."""

    container = get_container()
    specs = container.spec_registry.all()
    if not specs:
        typer.echo("No specifications registered")
        return
    for spec in specs:
        typer.echo(f"{spec.id}\tinitial={spec.initial}\tstates={len(spec.states)}")


@spec_app.command("describe")
def spec_describe(spec_id: str) -> None:
    """Show the states and transitions of a specification."""

    container = get_container()
    try:
        spec = container.spec_registry.get(spec_id)
    except EntityFlowError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc

    graph = TransitionGraph.from_spec(spec)
    typer.echo(f"Specification: {spec.id}")
    typer.echo(f"Initial state: {spec.initial}")
    for name, definition in spec.states.items():
        marker = " (terminal)" if definition.is_terminal else ""
        typer.echo(f"{name}{marker}")
        for event, transition in definition.transitions():
            extras = []
            if transition.guard:
                extras.append(f"guard={transition.guard}")
            if transition.action:
                extras.append(f"action={transition.action}")
            suffix = f" [{', '.join(extras)}]" if extras else ""
            typer.echo(f"  {event} -> {transition.target}{suffix}")
    unreachable = graph.unreachable()
    if unreachable:
        typer.echo("Unreachable: " + ", ".join(unreachable))


@app.command("execute")
def execute(
    entity_type: str,
    entity_id: str,
    event: str,
    data: str | None = typer.Option(None, help="JSON object merged into the context"),
    actor: str | None = typer.Option(None, help="Who is executing the command"),
) -> None:
    """Fire an event against an entity and persist the outcome."""

    container = get_container()
    command = Command(
        entity_type=entity_type,
        entity_id=entity_id,
        event=event,
        data=_parse_data(data),
        actor=actor,
    )

    async def _execute() -> TransitionResult:
        authorize(container.policy, command)
        return await container.orchestration.execute(command)

    result = _run(_execute())
    typer.echo(f"{result.from_state} --{result.event}--> {result.to_state}")
    typer.echo(_dumps(result.new_context))


@app.command("query")
def query(entity_type: str, entity_id: str) -> None:
    """Show the current state of an entity."""

    container = get_container()
    state = _run(container.orchestration.query(entity_type, entity_id))
    typer.echo(f"State:\t{state.state}")
    typer.echo(f"Version:\t{state.version}")
    typer.echo(f"Updated:\t{state.updated_at.isoformat()}")
    typer.echo(_dumps(state.context))


@app.command("list")
def list_entities(
    entity_type: str,
    status: str | None = typer.Option(None, help="Only entities in this state"),
    limit: int | None = typer.Option(None, min=0),
    offset: int = typer.Option(0, min=0),
) -> None:
    """List entities of a type."""

    container = get_container()
    criteria = QueryFilter(status=status, limit=limit, offset=offset)
    states = _run(container.orchestration.list_entities(entity_type, criteria))
    if not states:
        typer.echo("No entities found")
        return
    for state in states:
        typer.echo(f"{state.id}\t{state.state}\tv{state.version}")


@app.command("status")
def status(entity_type: str) -> None:
    """Summarize entities of a type by state."""

    container = get_container()
    try:
        spec = container.spec_registry.get(entity_type)
    except EntityFlowError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc

    states = _run(container.orchestration.list_entities(entity_type))
    counts = Counter(state.state for state in states)

    table = Table(title=f"{entity_type} entities by state")
    table.add_column("State", style="cyan")
    table.add_column("Entities", style="green", justify="right")
    table.add_column("Terminal", style="magenta")
    for name, definition in spec.states.items():
        table.add_row(name, str(counts.get(name, 0)), "yes" if definition.is_terminal else "")
    console.print(table)

    unknown = sorted(set(counts) - set(spec.states))
    for name in unknown:
        console.print(f"[red]Undeclared state {name}: {counts[name]} entities[/red]")
    console.print(f"[green]Total entities: {len(states)}[/green]")


@app.command("history")
def history(
    entity_type: str,
    entity_id: str,
    limit: int | None = typer.Option(None, min=0),
    offset: int = typer.Option(0, min=0),
) -> None:
    """Show the audit trail of an entity, newest first."""

    container = get_container()
    entries = _run(container.orchestration.get_history(entity_type, entity_id, limit, offset))
    if not entries:
        typer.echo("No history found")
        return
    for entry in entries:
        actor = entry.actor or "-"
        typer.echo(
            f"{entry.timestamp.isoformat()}\t{entry.event}\t"
            f"{entry.from_state} -> {entry.to_state}\t{entry.result.value}\t{actor}"
        )


@app.command("can-transition")
def can_transition(
    entity_type: str,
    entity_id: str,
    event: str,
    data: str | None = typer.Option(None, help="JSON object merged into the context"),
) -> None:
    """Check whether an event could fire now, without executing it."""

    container = get_container()
    check = _run(
        container.orchestration.can_transition(entity_type, entity_id, event, _parse_data(data))
    )
    if check.allowed:
        typer.echo(f"Allowed: {event} -> {check.target}")
    else:
        typer.echo(f"Not allowed: {check.reason}")
        raise typer.Exit(code=2)


__all__ = ["app"]
