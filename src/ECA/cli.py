#!/usr/bin/env python3
from __future__ import annotations

import asyncio
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ECA.core.config import settings
from ECA.db.base import Base
from ECA.db.session import build_engine, build_sessionmaker

# -----------------------------------------------------------------------------
# Globals
# -----------------------------------------------------------------------------
console = Console()


def _run(coro):
    return asyncio.run(coro)


async def _create_all(url: str) -> None:
    import ECA.db.models  # noqa: F401  (register every table on Base.metadata)

    engine = build_engine(url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()


async def _seed(url: str) -> dict[str, int]:
    from ECA.services.reference import seed_reference_data

    engine = build_engine(url)
    try:
        async with build_sessionmaker(engine)() as session:
            return await seed_reference_data(session)
    finally:
        await engine.dispose()


async def _overdue(url: str, mode: str, limit: int):
    from ECA.db.models import OverdueFilter
    from ECA.schemas.common import PageParams
    from ECA.services.filters import OrderFilter
    from ECA.services.orders import list_orders

    filt = OrderFilter(overdue=OverdueFilter.ONLY) if mode == "retard" else OrderFilter(late=True)
    engine = build_engine(url)
    try:
        async with build_sessionmaker(engine)() as session:
            return await list_orders(session, filt, PageParams(page=1, limit=limit))
    finally:
        await engine.dispose()


# -----------------------------------------------------------------------------
# Root
# -----------------------------------------------------------------------------
@click.group(help="ECA back office CLI")
@click.option("--database-url", envvar="DATABASE_URL", default=None, help="Override DATABASE_URL")
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str]) -> None:
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url or settings.DATABASE_URL


# -----------------------------------------------------------------------------
# db
# -----------------------------------------------------------------------------
@cli.group("db", help="Database helpers (Alembic stays the migration path)")
def db_group() -> None:
    pass


@db_group.command("init", help="Create all tables on DATABASE_URL")
@click.pass_context
def db_init(ctx: click.Context) -> None:
    url = ctx.obj["database_url"]
    _run(_create_all(url))
    console.print(f"[green]Tables created[/green] on {url}")


@db_group.command("seed", help="Insert default statuses, media formats and billing states")
@click.pass_context
def db_seed(ctx: click.Context) -> None:
    counts = _run(_seed(ctx.obj["database_url"]))
    table = Table(title="Reference data inserted")
    table.add_column("Table")
    table.add_column("New rows", justify="right")
    for name, n in counts.items():
        table.add_row(name, str(n))
    console.print(table)


# -----------------------------------------------------------------------------
# orders
# -----------------------------------------------------------------------------
@cli.group("orders", help="Order queries")
def orders_group() -> None:
    pass


@orders_group.command("overdue", help="List overdue orders")
@click.option("--retard/--late", "retard", default=True,
              help=f"--retard: older than {settings.RETARD_THRESHOLD_DAYS} days and not completed; "
                   f"--late: older than {settings.LATE_THRESHOLD_DAYS} days and still open")
@click.option("--limit", type=click.IntRange(1, settings.MAX_PAGE_SIZE), default=settings.MAX_PAGE_SIZE, show_default=True)
@click.pass_context
def orders_overdue(ctx: click.Context, retard: bool, limit: int) -> None:
    mode = "retard" if retard else "late"
    rows, total = _run(_overdue(ctx.obj["database_url"], mode, limit))

    table = Table(title=f"Overdue orders ({mode}): {total}")
    table.add_column("ID", justify="right")
    table.add_column("Received")
    table.add_column("Patron")
    table.add_column("Title")
    table.add_column("Status")
    for o in rows:
        table.add_row(
            str(o.id),
            o.request_received_date.date().isoformat(),
            (o.aveugle.name or o.aveugle.email or str(o.aveugle_id)) if o.aveugle else str(o.aveugle_id),
            o.catalogue.title if o.catalogue else str(o.catalogue_id),
            o.status.name if o.status else str(o.status_id),
        )
    console.print(table)
    if total > len(rows):
        console.print(f"[yellow]{total - len(rows)} more not shown[/yellow]")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
