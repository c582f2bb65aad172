"""Operator CLI for inspecting and correcting SKU pools."""

import asyncio
import json

import click
from pygments import highlight
from pygments.formatters import Terminal256Formatter
from pygments.lexers import JsonLexer

from subsku.logging import setup_logging
from subsku.models.sku_pool import SubUnit
from subsku.services.inventory.availability import describe_pool
from subsku.services.inventory.pool_store import SubSkuPoolStore
from subsku.services.inventory.reconciliation_service import ReconcileOutcome, ReconciliationService
from subsku.services.inventory_log import DatabaseInventoryLog
from subsku.tasks.task_db import task_session_maker

FORMATTER = Terminal256Formatter(style="monokai")


def style_header(text: str) -> str:
    """Style section headers (yellow, bold)."""
    return click.style(text, fg="yellow", bold=True)


def highlight_json(data: object) -> str:
    return highlight(json.dumps(data, indent=4), JsonLexer(), FORMATTER).rstrip()


async def _load_pool(sku: str) -> list[SubUnit] | None:
    async with task_session_maker() as session_maker:
        return await SubSkuPoolStore(session_maker).get(sku)


async def _reconcile(sku: str, quantity: int) -> ReconcileOutcome:
    async with task_session_maker() as session_maker:
        store = SubSkuPoolStore(session_maker)
        service = ReconciliationService(store, DatabaseInventoryLog(session_maker))
        return await service.reconcile_to_external(sku, quantity, reference="Manual reconcile")


@click.group()
def cli() -> None:
    """Sub-SKU pool management."""
    setup_logging()


@cli.command("show-pool")
@click.argument("sku")
@click.option("--json", "as_json", is_flag=True, help="Print the raw sub-unit list")
def show_pool(sku: str, as_json: bool) -> None:
    """Show the sub-units of SKU and their availability."""
    sub_units = asyncio.run(_load_pool(sku))
    if sub_units is None:
        raise click.ClickException(f"SKU {sku} not found")

    if as_json:
        click.echo(highlight_json([sub_unit.model_dump(mode="json") for sub_unit in sub_units]))
        return

    availability = describe_pool(sub_units)
    click.echo(style_header(f"{sku}:"))
    click.echo(f"  Total:       {availability.total_count}")
    click.echo(f"  Available:   {availability.available_count}")
    click.echo(f"  Unavailable: {availability.unavailable_count}")
    if availability.available_names:
        click.echo(f"  Next up:     {', '.join(availability.available_names[:10])}")


@cli.command("reconcile")
@click.argument("sku")
@click.argument("quantity", type=int)
def reconcile(sku: str, quantity: int) -> None:
    """Add or remove Available sub-units of SKU until QUANTITY remain."""
    outcome = asyncio.run(_reconcile(sku, quantity))
    if outcome.action == "none":
        click.secho(f"{sku} already has {outcome.local_quantity} available sub-unit(s).", fg="green")
        return

    click.secho(f"{sku}: {outcome.action} {outcome.quantity} sub-unit(s)", fg="green")
    for name in outcome.sub_units:
        click.echo(f"  {name}")


if __name__ == "__main__":
    cli()
