"""CLI entry point.

Provides the main CLI application with commands for:
- catalog: List node kinds and their ports
- validate: Check a workflow document
- run: Dry-run a workflow document against one chat event
- workflows: Manage graphs in the JSON file store
"""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from botflow.logging_config import configure_logging

app = typer.Typer(
    name="botflow",
    help="Workflow automation graphs for Telegram bots",
    add_completion=False,
    no_args_is_help=True,
)

workflows_app = typer.Typer(
    help="Manage stored workflow graphs",
    no_args_is_help=True,
)
app.add_typer(workflows_app, name="workflows")

console = Console()


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """botflow command line."""
    configure_logging("DEBUG" if verbose else None)


@app.command()
def catalog() -> None:
    """List the available node kinds."""
    from botflow.graph.catalog import get_default_catalog

    table = Table(title="Node kinds", show_header=True)
    table.add_column("Type", style="cyan")
    table.add_column("Category")
    table.add_column("Inputs")
    table.add_column("Outputs")
    table.add_column("Description", style="dim")

    for descriptor in get_default_catalog().list_all():
        table.add_row(
            descriptor.type,
            descriptor.category.value,
            ", ".join(descriptor.input_ports) or "-",
            ", ".join(
                port.name if port.fan_out else f"{port.name} (single)" for port in descriptor.output_ports
            ),
            descriptor.description,
        )

    console.print(table)


@app.command()
def validate(
    file: Annotated[Path, typer.Argument(help="Workflow document (JSON or YAML)")],
) -> None:
    """Validate a workflow document.

    Checks the document layout, each node's config and the graph
    structure. Exits with code 1 when errors are found.
    """
    from botflow.schema import validate_document

    content = _read_file(file)
    result = validate_document(content)

    for warning in result.warnings:
        console.print(f"[yellow]warning[/yellow] {escape(str(warning))}")
    for error in result.errors:
        console.print(f"[red]error[/red] {escape(str(error))}")

    if not result.valid:
        console.print(f"[red]✗ {file} has {len(result.errors)} error(s)[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ {file} is valid[/green]")


@app.command()
def run(
    file: Annotated[Path, typer.Argument(help="Workflow document (JSON or YAML)")],
    command: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--command", "-c", help="Command event, e.g. '/start ref42'"),
    ] = None,
    text: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--text", "-t", help="Text message event"),
    ] = None,
    callback: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--callback", help="Inline button callback event"),
    ] = None,
    context: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--context", help="JSON object exposed to condition expressions"),
    ] = None,
    chat_id: Annotated[int, typer.Option("--chat-id", help="Chat id of the event")] = 1,
    user_id: Annotated[int, typer.Option("--user-id", help="User id of the event")] = 1,
) -> None:
    """Dry-run a workflow document against one event.

    Prints the instruction stream the bot would execute and any
    diagnostics. Nothing is sent.

    Examples:
        botflow run welcome.yaml --command /start
        botflow run welcome.yaml --text hello --context '{"user": {"isPremium": true}}'
    """
    from botflow.graph.events import ChatEvent, EventKind
    from botflow.graph.instructions import dump_instructions
    from botflow.graph.interpreter import WorkflowInterpreter
    from botflow.graph.model import WorkflowGraph
    from botflow.schema import GraphRecord, parse_document

    chosen = [value for value in (command, text, callback) if value is not None]
    if len(chosen) != 1:
        console.print("[red]Give exactly one of --command, --text or --callback[/red]")
        raise typer.Exit(code=2)

    extra: dict = {}
    if context:
        try:
            extra = json.loads(context)
        except json.JSONDecodeError as e:
            console.print(f"[red]Invalid --context JSON: {e}[/red]")
            raise typer.Exit(code=2) from e
        if not isinstance(extra, dict):
            console.print("[red]--context must be a JSON object[/red]")
            raise typer.Exit(code=2)

    data, errors = parse_document(_read_file(file))
    if errors:
        for error in errors:
            console.print(f"[red]error[/red] {escape(str(error))}")
        raise typer.Exit(code=1)
    try:
        record = GraphRecord.from_document(data)
    except PydanticValidationError as e:
        console.print(f"[red]Invalid workflow document: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    if callback is not None:
        event = ChatEvent.callback(callback, chat_id=chat_id, user_id=user_id)
    elif command is not None:
        message = command if command.startswith("/") else f"/{command}"
        event = ChatEvent.from_message_text(message, chat_id=chat_id, user_id=user_id)
    else:
        event = ChatEvent(kind=EventKind.TEXT, text=text, chat_id=chat_id, user_id=user_id)

    graph = WorkflowGraph.from_record(record)
    result = WorkflowInterpreter.from_settings().interpret(graph, event, extra)

    if not result.matched:
        console.print("[yellow]No trigger matched this event.[/yellow]")
        return

    console.print(
        Panel(
            f"Graph: {graph.name or graph.id}\n"
            f"Event: {event.kind.value}\n"
            f"Walks: {', '.join(f'{w.trigger_node_id} ({w.status.value})' for w in result.walks)}",
            title="botflow run",
            border_style="blue",
        )
    )
    console.print_json(data=dump_instructions(result.instructions))

    for diagnostic in result.diagnostics:
        node = f" at {diagnostic.node_id}" if diagnostic.node_id else ""
        console.print(f"[yellow]{diagnostic.code}[/yellow]{node}: {escape(diagnostic.message)}")


# =============================================================================
# WORKFLOWS (JSON file store)
# =============================================================================


def _service():
    from botflow.services.store import JsonFileWorkflowStore
    from botflow.services.workflows import WorkflowService
    from botflow.settings import get_settings

    settings = get_settings()
    return WorkflowService(JsonFileWorkflowStore(settings.store_path), settings=settings)


@workflows_app.command("list")
def workflows_list(
    bot: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--bot", "-b", help="Only graphs bound to this bot"),
    ] = None,
) -> None:
    """List stored workflow graphs."""
    from botflow.exceptions import PersistenceError

    service = _service()
    try:
        records = service.list_for_bot(bot) if bot else service.list_all()
    except PersistenceError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    if not records:
        console.print("[dim]No workflow graphs found.[/dim]")
        return

    table = Table(title=f"Workflow graphs ({len(records)})", show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Active")
    table.add_column("Bots")
    table.add_column("Nodes", justify="right")

    for record in records:
        active = "[green]yes[/green]" if record.is_active else "[dim]no[/dim]"
        table.add_row(
            record.id,
            record.name,
            active,
            ", ".join(record.bound_bot_ids) or "-",
            str(len(record.nodes)),
        )

    console.print(table)


@workflows_app.command("import")
def workflows_import(
    file: Annotated[Path, typer.Argument(help="Workflow document (JSON or YAML)")],
) -> None:
    """Store a workflow document, replacing any graph with the same id.

    A document marked active must pass the same checks as ``activate``.
    """
    from botflow.exceptions import ActivationError, BotflowError
    from botflow.schema import GraphRecord, parse_document, validate_document

    content = _read_file(file)
    result = validate_document(content)
    if not result.valid:
        for error in result.errors:
            console.print(f"[red]error[/red] {escape(str(error))}")
        raise typer.Exit(code=1)

    data, _ = parse_document(content)
    record = GraphRecord.from_document(data)
    try:
        _service().save(record)
    except ActivationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        for violation in e.violations:
            console.print(f"  [red]•[/red] {escape(violation)}")
        raise typer.Exit(code=1) from e
    except BotflowError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Imported {record.id}[/green]")


@workflows_app.command("activate")
def workflows_activate(
    graph_id: Annotated[str, typer.Argument(help="Workflow graph ID")],
) -> None:
    """Activate a graph for its bound bots."""
    from botflow.exceptions import ActivationError, BotflowError

    try:
        _service().activate(graph_id)
    except ActivationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        for violation in e.violations:
            console.print(f"  [red]•[/red] {escape(violation)}")
        raise typer.Exit(code=1) from e
    except BotflowError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Activated {graph_id}[/green]")


@workflows_app.command("deactivate")
def workflows_deactivate(
    graph_id: Annotated[str, typer.Argument(help="Workflow graph ID")],
) -> None:
    """Deactivate a graph."""
    from botflow.exceptions import BotflowError

    try:
        _service().deactivate(graph_id)
    except BotflowError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Deactivated {graph_id}[/green]")


@workflows_app.command("bind")
def workflows_bind(
    graph_id: Annotated[str, typer.Argument(help="Workflow graph ID")],
    bot_id: Annotated[str, typer.Argument(help="Bot ID")],
) -> None:
    """Bind a bot to a graph."""
    from botflow.exceptions import BotflowError

    try:
        _service().bind_bot(graph_id, bot_id)
    except BotflowError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Bound {bot_id} to {graph_id}[/green]")


@workflows_app.command("delete")
def workflows_delete(
    graph_id: Annotated[str, typer.Argument(help="Workflow graph ID")],
) -> None:
    """Delete a graph and unbind it from its bots."""
    from botflow.exceptions import BotflowError

    try:
        _service().delete(graph_id)
    except BotflowError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Deleted {graph_id}[/green]")


def _read_file(file: Path) -> str:
    try:
        return file.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Cannot read {file}: {e}[/red]")
        raise typer.Exit(code=1) from e


if __name__ == "__main__":
    app()
