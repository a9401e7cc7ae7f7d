# gshop_tracker/services/updater.py

"""Re-scrapes stored products to refresh prices and reviews."""

import asyncio
import logging
from dataclasses import dataclass, field

from gshop_tracker.config.settings import Settings
from gshop_tracker.models.product import ProductRecord
from gshop_tracker.services.scrape_orchestrator import (
    ScrapeOptions,
    ScrapeOrchestrator,
)
from gshop_tracker.storage.product_store import ProductStore

logger = logging.getLogger("gshop_tracker.updater")


@dataclass
class UpdateSummary:
    """Outcome of one update batch."""

    total: int = 0
    updated: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )

    @property
    def ok(self) -> bool:
        return self.total > 0 and self.failed == 0


def select_records(
    records: list[ProductRecord],
    limit: int | None = None,
    offset: int = 0,
    category: str | None = None,
    brand: str | None = None,
) -> list[ProductRecord]:
    """Filter by category/brand, then apply offset and limit."""
    selected = [
        r for r in records
        if (not category or r.category == category)
        and (not brand or r.brand == brand)
    ]
    selected = selected[max(offset, 0):]
    if limit is not None:
        selected = selected[:max(limit, 0)]
    return selected


class ProductUpdater:
    """Walks stored products one by one, pausing between scrapes.

    A failing product is logged and counted; the batch goes on.
    """

    def __init__(
        self,
        orchestrator: ScrapeOrchestrator,
        store: ProductStore | None = None,
        delay: float | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.store = store or orchestrator.store
        self.delay = Settings.UPDATE_DELAY if delay is None else delay

    def _options_for(self, record: ProductRecord) -> ScrapeOptions:
        return ScrapeOptions(
            category=record.category or None,
            brand=record.brand or None,
            max_clicks_stores=Settings.UPDATE_MAX_CLICKS_STORES,
            max_clicks_reviews=Settings.UPDATE_MAX_CLICKS_REVIEWS,
            click_delay=Settings.DEFAULT_CLICK_DELAY,
        )

    async def run(
        self,
        limit: int | None = None,
        offset: int = 0,
        category: str | None = None,
        brand: str | None = None,
    ) -> UpdateSummary:
        """Update the selected products and summarise the batch."""
        records = select_records(
            self.store.list_all(),
            limit=limit,
            offset=offset,
            category=category,
            brand=brand,
        )
        summary = UpdateSummary(total=len(records))
        if not records:
            logger.warning("No products found to update")
            return summary

        logger.info("Updating %d products", len(records))
        for index, record in enumerate(records, start=1):
            logger.info(
                "Updating product %d/%d: %s",
                index,
                len(records),
                record.product_name,
            )
            if not record.source_url:
                logger.warning(
                    "No source URL for product %s", record.product_id
                )
                summary.skipped += 1
                continue

            try:
                updated = await self.orchestrator.scrape(
                    record.source_url, self._options_for(record)
                )
            except Exception as exc:
                summary.failed += 1
                summary.errors.append(f"{record.product_id}: {exc}")
                logger.error(
                    "Error updating product %s",
                    record.product_id,
                    exc_info=True,
                )
            else:
                summary.updated += 1
                logger.info(
                    "Updated %s: %s-%s %s, %d stores, %d reviews",
                    updated.product_id,
                    updated.lowest_price,
                    updated.highest_price,
                    Settings.CURRENCY,
                    len(updated.stores),
                    len(updated.reviews),
                )

            if index < len(records) and self.delay > 0:
                logger.info(
                    "Waiting %.0f seconds before next product", self.delay
                )
                await asyncio.sleep(self.delay)

        logger.info(
            "Update finished: %d updated, %d failed, %d skipped",
            summary.updated,
            summary.failed,
            summary.skipped,
        )
        return summary
