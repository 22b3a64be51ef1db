"""Inventory sync CLI."""

import asyncio
import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="inventory-sync",
    help="Unit locks and OTA channel sync",
    no_args_is_help=True,
)
console = Console()


def _output_result(result: dict[str, Any], json_output: bool = False) -> None:
    """Output result as JSON or formatted."""
    if json_output:
        console.print_json(json.dumps(result, default=str))
    else:
        for key, value in result.items():
            console.print(f"[bold]{key}:[/bold] {value}")


@app.command()
def serve(
    port: int = typer.Option(8024, "--port", "-p", help="Port to run on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind to"),
):
    """Launch the inventory sync API."""
    try:
        import uvicorn
    except ImportError:
        console.print("[red]Missing dependencies. Install with: pip install -e '.[server]'[/red]")
        raise typer.Exit(1)

    console.print(f"[bold cyan]Starting Inventory Sync at http://{host}:{port}[/bold cyan]")
    uvicorn.run("inventory_sync.app:app", host=host, port=port)


@app.command()
def flush(
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum queue entries to send"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Send pending channel updates now."""
    from .database import async_session_factory
    from .runtime import build_runtime

    async def _run():
        runtime = build_runtime(async_session_factory)
        return await runtime.dispatcher.flush_queue(limit=limit)

    result = asyncio.run(_run())
    if json_output:
        _output_result(
            {
                "processed": [o.id for o in result.processed],
                "failed": [{"id": o.id, "errors": o.errors} for o in result.failed],
                "remaining": result.remaining,
            },
            json_output=True,
        )
        return

    table = Table(title="Channel queue flush")
    table.add_column("Entry", style="cyan")
    table.add_column("Status")
    table.add_column("Channels")
    for outcome in result.processed:
        table.add_row(str(outcome.id), "[green]processed[/green]", ", ".join(d["channel"] for d in outcome.dispatches))
    for outcome in result.failed:
        errors = "; ".join(str(e.get("error")) for e in outcome.errors)
        table.add_row(str(outcome.id), "[red]failed[/red]", errors)
    console.print(table)
    console.print(f"Remaining pending: {result.remaining}")


@app.command("test-connection")
def test_connection(
    channel: str = typer.Argument(..., help="Channel key (airbnb, booking, expedia)"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Check whether a channel integration is ready."""
    from .database import async_session_factory
    from .errors import InventoryError
    from .runtime import build_runtime

    async def _run():
        runtime = build_runtime(async_session_factory)
        return await runtime.dispatcher.test_connection(channel)

    try:
        check = asyncio.run(_run())
    except InventoryError as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(1)
    _output_result({"channel": channel, "ok": check.ok, **check.details}, json_output)
    if not check.ok:
        raise typer.Exit(1)


@app.command("migrate-secrets")
def migrate_secrets():
    """Collapse legacy secret field names into the canonical signing secret."""
    from .database import async_session_factory
    from .services import integration_svc

    async def _run():
        async with async_session_factory() as db:
            return await integration_svc.migrate_legacy_secrets(db)

    migrated = asyncio.run(_run())
    if migrated:
        console.print(f"[green]Migrated:[/green] {', '.join(migrated)}")
    else:
        console.print("Nothing to migrate.")


if __name__ == "__main__":
    app()
