from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from rich.console import Console
from rich.table import Table

from prospect_workflow.adapters import SQLClientRecordStore, SQLConversationStateStore
from prospect_workflow.db import Database
from prospect_workflow.log import configure_logging
from prospect_workflow.models import ClientRecord, ConversationState, ConversationStatus
from prospect_workflow.settings import DEFAULT_CONFIG_PATH, init_settings

console = Console()


def render_states(states: list[ConversationState]) -> None:
    table = Table(title="Prospect Conversations", show_lines=False)
    table.add_column("Customer", style="cyan", no_wrap=True)
    table.add_column("Status", style="magenta")
    table.add_column("Unread", justify="right")
    table.add_column("Follow-ups", justify="right")
    table.add_column("Updated", style="green")
    table.add_column("Last error", overflow="fold")

    for state in states:
        table.add_row(
            state.customer_id,
            state.status.value,
            str(len(state.unread_messages)),
            str(state.follow_ups_sent),
            state.last_updated.isoformat(timespec="seconds"),
            state.last_error or "-",
        )
    console.print(table)


def render_record(record: ClientRecord) -> None:
    table = Table(title=f"Client {record.address}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Name", record.name)
    table.add_row("Phone", record.phone)
    table.add_row("Location", record.details.location)
    table.add_row("Property type", record.details.property_type)
    table.add_row("Transaction", record.details.transaction_type)
    table.add_row("Saved at", record.saved_at.isoformat(timespec="seconds"))
    console.print(table)


async def _show_status(database: Database, customer_id: str | None) -> None:
    store = SQLConversationStateStore(database)
    await database.init_db()
    try:
        if customer_id:
            state = await store.load(customer_id)
            states = [state] if state else []
        else:
            states = await store.list_by_status(*ConversationStatus)
    finally:
        await database.dispose()

    if not states:
        console.print("[yellow]No conversations found.[/yellow]")
        return
    render_states(states)


async def _show_client(database: Database, address: str) -> None:
    store = SQLClientRecordStore(database)
    await database.init_db()
    try:
        record = await store.get(address)
    finally:
        await database.dispose()

    if record is None:
        console.print(f"[yellow]No client record for {address}.[/yellow]")
        return
    render_record(record)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="prospect-workflow",
        description="Run or inspect the prospect conversation workflow.",
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to the YAML variables file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Start the HTTP API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    status = subparsers.add_parser("status", help="Show conversation states.")
    status.add_argument("customer_id", nargs="?", help="Only show this customer.")

    client = subparsers.add_parser("client", help="Show a saved client record.")
    client.add_argument("address")

    args = parser.parse_args(argv)

    if args.command == "serve":
        import uvicorn

        from prospect_workflow.main import create_app

        uvicorn.run(create_app(config_path=Path(args.config)), host=args.host, port=args.port)
        return

    settings = init_settings(args.config)
    configure_logging(settings.log_level, settings.log_json)
    database = Database(settings.database_url)

    if args.command == "status":
        asyncio.run(_show_status(database, args.customer_id))
    else:
        asyncio.run(_show_client(database, args.address))


if __name__ == "__main__":
    main()
