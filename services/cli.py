"""
ledger: operator commands for the payments ledger.

    ledger audit [--format text|json]        Consistency audit (exit 0 clean, 1 violations, 2 error)
    ledger seed-order [ORDER_ID] [AMOUNT] [LAST4]
                                             Authorized demo order for the warehouse screen
    ledger reset-db                          Recreate tables with the seven demo orders
    ledger serve [--host] [--port]           Run the API with uvicorn
"""
import asyncio
import dataclasses
import json
import os
import sys
import time
from datetime import datetime, timezone

import click
from sqlalchemy.exc import SQLAlchemyError

from services.audit_service.service import ConsistencyAuditor
from services.order_service.models import Authorization, AuthOutcome, Order, OrderStatus
from services.order_service.repository import LedgerRepository
from shared.config.database import LedgerStore
from shared.config.settings import Settings
from shared.money import ZERO, quantize, to_decimal, to_money
from shared.observability import configure_logging

DEMO_ORDERS = [
    ("ORD-1001", OrderStatus.AUTHORIZED, "Erik Gijlstra", "4242", "12.99", "2025-10-01T10:00:00+00:00"),
    ("ORD-1002", OrderStatus.ERROR, "Prisca Louis", "1881", "50.00", "2025-10-01T10:05:00+00:00"),
    ("ORD-1003", OrderStatus.AUTHORIZED, "Felix Botero", "1111", "45.00", "2025-10-01T10:10:00+00:00"),
    ("ORD-1004", OrderStatus.ERROR, "Mariah Weldon", "0005", "25.99", "2025-10-01T10:15:00+00:00"),
    ("ORD-1005", OrderStatus.AUTHORIZED, "Test 1", "0129", "50.00", "2025-10-02T21:18:40+00:00"),
    ("ORD-1006", OrderStatus.AUTHORIZED, "Test 2", "2011", "50.00", "2025-10-02T21:19:17+00:00"),
    ("ORD-1007", OrderStatus.AUTHORIZED, "Test 3", "2019", "49.97", "2025-10-02T21:19:38+00:00"),
]


def _store(ctx: click.Context) -> LedgerStore:
    settings: Settings = ctx.obj["settings"]
    return LedgerStore(settings.database_url, echo=settings.db_echo)


@click.group()
@click.option("--database-url", default=None, help="Overrides DATABASE_URL.")
@click.option("--verbose", "-v", is_flag=True, help="Emit LOG_LEVEL logs instead of warnings only.")
@click.pass_context
def cli(ctx: click.Context, database_url: str | None, verbose: bool) -> None:
    """Payments ledger operator commands."""
    settings = Settings.from_env()
    if database_url:
        settings = dataclasses.replace(settings, database_url=database_url)
    # Loggers are not cached: the streams they print to can change between invocations
    configure_logging(settings.log_level if verbose else "WARNING", cache_logger_on_first_use=False)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command("audit")
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text", show_default=True)
@click.pass_context
def audit_command(ctx: click.Context, fmt: str) -> None:
    """Run the consistency audit over the whole store."""

    async def run():
        store = _store(ctx)
        try:
            await store.create_all()
            return await ConsistencyAuditor(store).run()
        finally:
            await store.dispose()

    try:
        violations = asyncio.run(run())
    except SQLAlchemyError as e:
        click.echo(f"Audit failed: {e}", err=True)
        sys.exit(2)

    if fmt == "json":
        payload = {"ok": not violations, "violations": [v.model_dump(mode="json", by_alias=True) for v in violations]}
        click.echo(json.dumps(payload, indent=2))
    elif violations:
        for v in violations:
            click.echo(f"FAIL  [{v.code.value}] {v.message}")
        click.echo(f"\n{len(violations)} violation(s) found.")
    else:
        click.echo("All database consistency checks passed.")

    sys.exit(1 if violations else 0)


@cli.command("seed-order")
@click.argument("order_id", required=False)
@click.argument("amount", required=False, default="79.99")
@click.argument("last4", required=False, default="4242")
@click.pass_context
def seed_order_command(ctx: click.Context, order_id: str | None, amount: str, last4: str) -> None:
    """Create an AUTHORIZED order with a SUCCESS authorization."""
    order_id = order_id or f"ORD-DEMO-{int(time.time() * 1000)}"
    try:
        money = to_money(amount)
    except ValueError:
        raise click.BadParameter(f"not a monetary amount: {amount}", param_hint="AMOUNT")
    token = f"{ctx.obj['settings'].static_token_prefix}{order_id}"

    async def run():
        store = _store(ctx)
        try:
            await store.create_all()
            async with store.transaction() as db:
                order = await LedgerRepository.create_order(db, Order(
                    order_id=order_id,
                    status=OrderStatus.PENDING.value,
                    customer_name="Warehouse Demo",
                    card_last4=str(last4)[-4:],
                    amount=float(money),
                ))
                await LedgerRepository.replace_authorization(db, Authorization(
                    order_id=order_id,
                    provider_token=token,
                    amount=float(money),
                    outcome=AuthOutcome.SUCCESS.value,
                ))
                await LedgerRepository.update_order_status(db, order, OrderStatus.AUTHORIZED.value)
                settled = await LedgerRepository.sum_successful_settlements(db, order_id)
            return settled
        finally:
            await store.dispose()

    try:
        settled = asyncio.run(run())
    except SQLAlchemyError as e:
        click.echo(f"Seeding failed: {e}", err=True)
        sys.exit(1)

    click.echo("=== Authorized Order Ready ===")
    click.echo(f"Order ID:           {order_id}")
    click.echo(f"Authorized Amount:  {money}")
    click.echo(f"Settled So Far:     {settled}")
    click.echo(f"AvailableToSettle:  {quantize(money - (to_decimal(settled) or ZERO))}")
    click.echo(f"Card Last4:         {last4}")
    click.echo(f"Token:              {token}")


@cli.command("reset-db")
@click.confirmation_option(prompt="This wipes every order, authorization and settlement. Continue?")
@click.pass_context
def reset_db_command(ctx: click.Context) -> None:
    """Recreate the tables and seed the seven demo orders."""
    prefix = ctx.obj["settings"].static_token_prefix

    async def run():
        store = _store(ctx)
        try:
            await store.drop_all()
            await store.create_all()
            async with store.transaction() as db:
                for order_id, status, name, last4, amount, created in DEMO_ORDERS:
                    created_at = datetime.fromisoformat(created).astimezone(timezone.utc)
                    await LedgerRepository.create_order(db, Order(
                        order_id=order_id,
                        status=status.value,
                        customer_name=name,
                        card_last4=last4,
                        amount=float(to_money(amount)),
                        created_at=created_at,
                    ))
                    outcome = AuthOutcome.SUCCESS if status == OrderStatus.AUTHORIZED else AuthOutcome.INCORRECT_DETAILS
                    await LedgerRepository.replace_authorization(db, Authorization(
                        order_id=order_id,
                        provider_token=f"{prefix}{order_id}",
                        amount=float(to_money(amount)),
                        outcome=outcome.value,
                        created_at=created_at,
                    ))
        finally:
            await store.dispose()

    asyncio.run(run())
    click.echo("Database reset to the seven demo orders (with authorization records).")
    click.echo("Orders: " + ", ".join(row[0] for row in DEMO_ORDERS))
    click.echo("Next /api/orders/next -> ORD-1008")


@cli.command("serve")
@click.option("--host", default=lambda: os.getenv("HOST", "127.0.0.1"), show_default="127.0.0.1")
@click.option("--port", type=int, default=lambda: int(os.getenv("PORT", "3001")), show_default="3001")
@click.pass_context
def serve_command(ctx: click.Context, host: str, port: int) -> None:
    """Run the HTTP API."""
    import uvicorn

    from main import create_app

    uvicorn.run(create_app(ctx.obj["settings"]), host=host, port=port)
