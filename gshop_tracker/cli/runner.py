# gshop_tracker/cli/runner.py

"""Command implementations behind main.py: scrape, update, list, health."""

import json
import logging
import sys

from rich.console import Console
from rich.table import Table

from gshop_tracker.config.settings import Settings
from gshop_tracker.errors import ScrapeError
from gshop_tracker.models.product import ProductRecord
from gshop_tracker.services.scrape_orchestrator import (
    ScrapeOptions,
    ScrapeOrchestrator,
)
from gshop_tracker.services.updater import ProductUpdater
from gshop_tracker.storage.file_manager import FileManager
from gshop_tracker.storage.product_store import ProductStore

logger = logging.getLogger("gshop_tracker.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _price(value: float | None) -> str:
    return f"{value:,.2f} {Settings.CURRENCY}" if value is not None else "N/A"


def _print_record_table(record: ProductRecord) -> None:
    """Render the offers of one record as a Rich table."""
    table = Table(
        title=record.product_name or "Unnamed product",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Store", style="magenta")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Original", justify="right", style="dim")
    table.add_column("Rating", justify="center")
    table.add_column("Free delivery", justify="center")

    sorted_offers = sorted(
        record.stores,
        key=lambda s: (
            s.current_price if s.current_price is not None else float("inf")
        ),
    )
    for idx, offer in enumerate(sorted_offers, 1):
        table.add_row(
            str(idx),
            offer.store or "—",
            _price(offer.current_price),
            _price(offer.original_price),
            f"{offer.rating:.1f}" if offer.rating is not None else "—",
            "yes" if offer.free_delivery else "",
        )

    Console().print(table)
    _err.print(
        f"[dim]{record.category} / {record.brand}  "
        f"lowest {_price(record.lowest_price)}  "
        f"average {_price(record.average_price)}  "
        f"{len(record.reviews)} reviews[/dim]"
    )


async def cli_scrape(
    url: str,
    category: str | None = None,
    brand: str | None = None,
    stores_clicks: int | None = None,
    reviews_clicks: int | None = None,
    click_delay: float | None = None,
    output_format: str = "json",
    export: bool = False,
) -> int:
    """Scrape one product URL and return an exit code (0=ok, 1=fail)."""
    store = ProductStore()
    try:
        orchestrator = ScrapeOrchestrator(store=store)
        options = ScrapeOptions(
            category=category,
            brand=brand,
            max_clicks_stores=stores_clicks,
            max_clicks_reviews=reviews_clicks,
            click_delay=click_delay,
        )
        _err.print(f"[bold]Scraping:[/bold] {url}")
        try:
            record = await orchestrator.scrape(url, options)
        except ScrapeError as exc:
            logger.error("Scrape failed: %s", exc, exc_info=True)
            _err.print(f"[red]Scrape failed: {exc}[/red]")
            return 1

        _err.print(
            f"[green]✓ {record.product_id}: {len(record.stores)} stores, "
            f"{len(record.reviews)} reviews, "
            f"{len(record.price_history)} history entries[/green]"
        )

        if export:
            path = FileManager().save_results(record)
            _err.print(f"[dim]Exported → {path}[/dim]")

        if output_format == "table":
            _print_record_table(record)
        else:
            json.dump(
                record.to_dict(),
                sys.stdout,
                ensure_ascii=False,
                indent=2,
            )
            sys.stdout.write("\n")
        return 0
    finally:
        store.close()


async def cli_update(
    limit: int | None = None,
    offset: int = 0,
    category: str | None = None,
    brand: str | None = None,
) -> int:
    """Re-scrape stored products; 0 only when every product updated."""
    store = ProductStore()
    try:
        updater = ProductUpdater(ScrapeOrchestrator(store=store), store)
        _err.print("[bold]Updating stored products...[/bold]")
        summary = await updater.run(
            limit=limit, offset=offset, category=category, brand=brand,
        )
    finally:
        store.close()

    if summary.total == 0:
        _err.print("[yellow]No products found to update.[/yellow]")
        return 1

    for error_msg in summary.errors:
        _err.print(f"[red]Error: {error_msg}[/red]")
    _err.print(
        f"[green]✓ {summary.updated} updated[/green]"
        f"  [red]{summary.failed} failed[/red]"
        f"  [dim]{summary.skipped} skipped of {summary.total}[/dim]"
    )
    return 0 if summary.ok else 1


def list_products(
    category: str | None = None,
    brand: str | None = None,
) -> int:
    """Print stored products as a Rich table."""
    store = ProductStore()
    try:
        records = store.list_all(category=category, brand=brand)
    finally:
        store.close()

    if not records:
        _err.print("[yellow]No products found in the database.[/yellow]")
        return 0

    table = Table(
        title=f"Stored Products ({len(records)})",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Name", max_width=50)
    table.add_column("ID", overflow="fold", style="dim")
    table.add_column("Type")
    table.add_column("Price range", justify="right", style="green")
    table.add_column("Average", justify="right")
    table.add_column("Stores", justify="right")
    table.add_column("Reviews", justify="right")
    table.add_column("Last updated", style="dim")
    table.add_column("Latest scan", style="dim")

    for idx, r in enumerate(records, 1):
        latest = r.price_history[-1] if r.price_history else None
        table.add_row(
            str(idx),
            (r.product_name or "—")[:50],
            r.product_id or "—",
            r.product_type or "N/A",
            f"{_price(r.lowest_price)} - {_price(r.highest_price)}",
            _price(r.average_price),
            str(len(r.stores)),
            str(len(r.reviews)),
            r.updated_at.strftime("%Y-%m-%d %H:%M") if r.updated_at else "—",
            (
                f"{latest.date:%Y-%m-%d %H:%M} {_price(latest.lowest_price)}"
                if latest
                else "—"
            ),
        )

    Console().print(table)
    return 0


async def run_health_check() -> int:
    """Probe Google Shopping connectivity."""
    from gshop_tracker.services.health_checker import HealthChecker

    _err.print("[bold]Running Google Shopping health check...[/bold]")
    result = await HealthChecker().check()

    table = Table(
        title="Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("URL", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    if result.status == "ok":
        status = "[green]✅ OK[/green]"
    elif result.status == "slow":
        status = "[yellow]⚠️  SLOW[/yellow]"
    elif result.status == "blocked":
        status = "[red]⛔ BLOCKED[/red]"
    else:
        status = "[red]❌ DOWN[/red]"

    latency = (
        f"{result.latency_ms:.0f}ms"
        if result.latency_ms > 0
        else "—"
    )
    table.add_row(result.url, status, latency, result.message)

    Console().print(table)
    return 0 if result.ok else 1
