# gshop_tracker/storage/product_store.py

"""SQLite-backed product store with append-only price history."""

import hashlib
import json
import logging
import re
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from gshop_tracker.config.settings import Settings
from gshop_tracker.errors import PersistenceError
from gshop_tracker.models.price_snapshot import PriceHistoryEntry
from gshop_tracker.models.product import (
    ProductRecord,
    distribution_from_dict,
    distribution_to_dict,
    offer_from_dict,
    offer_to_dict,
    review_from_dict,
    review_to_dict,
)

logger = logging.getLogger("gshop_tracker.product_store")

# Latin letters, digits and the Arabic block survive in identifiers
_ID_STRIP_RE = re.compile(r"[^a-zA-Z0-9\u0600-\u06FF]")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    product_id          TEXT PRIMARY KEY,
    product_name        TEXT,
    category            TEXT NOT NULL DEFAULT 'other',
    brand               TEXT NOT NULL DEFAULT 'Unknown',
    product_type        TEXT,
    source_url          TEXT NOT NULL,
    photo_links         TEXT NOT NULL DEFAULT '[]',
    stores              TEXT NOT NULL DEFAULT '[]',
    reviews             TEXT NOT NULL DEFAULT '[]',
    rating_distribution TEXT NOT NULL DEFAULT '{}',
    lowest_price        REAL,
    highest_price       REAL,
    average_price       REAL,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS price_history (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id    TEXT NOT NULL
                  REFERENCES products(product_id) ON DELETE CASCADE,
    recorded_at   TEXT NOT NULL,
    lowest_price  REAL,
    highest_price REAL,
    average_price REAL,
    currency      TEXT NOT NULL DEFAULT 'SAR'
);

CREATE INDEX IF NOT EXISTS idx_history_product_date
    ON price_history(product_id, recorded_at);

CREATE INDEX IF NOT EXISTS idx_products_updated
    ON products(updated_at);
"""

_PRODUCT_COLUMNS = (
    "product_id, product_name, category, brand, product_type, "
    "source_url, photo_links, stores, reviews, rating_distribution, "
    "lowest_price, highest_price, average_price, created_at, updated_at"
)


def generate_product_id(product_name: str | None, source_url: str) -> str:
    """Derive the stable upsert key ``<sanitized name>-<url hash8>``."""
    clean_name = _ID_STRIP_RE.sub("", product_name or "unknown")
    url_hash = hashlib.md5(source_url.encode("utf-8")).hexdigest()[:8]
    return f"{clean_name}-{url_hash}"


class ProductStore:
    """Stores one row per product plus its price history.

    ``save`` is an upsert keyed on :func:`generate_product_id`: the
    first save inserts, later saves replace every scraped field and
    append exactly one history entry.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        logger.debug("ProductStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Row mapping ──────────────────────────────────────

    def _row_to_record(self, row: tuple[Any, ...]) -> ProductRecord:
        product_id: str = row[0]
        return ProductRecord(
            product_id=product_id,
            product_name=row[1],
            category=row[2],
            brand=row[3],
            product_type=row[4],
            source_url=row[5],
            photo_links=json.loads(row[6]),
            stores=[offer_from_dict(o) for o in json.loads(row[7])],
            reviews=[review_from_dict(r) for r in json.loads(row[8])],
            rating_distribution=distribution_from_dict(
                json.loads(row[9])
            ),
            lowest_price=row[10],
            highest_price=row[11],
            average_price=row[12],
            created_at=datetime.fromisoformat(row[13]),
            updated_at=datetime.fromisoformat(row[14]),
            price_history=self.get_price_history(product_id),
        )

    # ── Querying ─────────────────────────────────────────

    def find_by_identifier(
        self, product_id: str,
    ) -> ProductRecord | None:
        """Return the stored record for *product_id*, if any."""
        row = self._conn.execute(
            f"SELECT {_PRODUCT_COLUMNS} FROM products "
            "WHERE product_id = ?",
            (product_id,),
        ).fetchone()
        return self._row_to_record(row) if row else None

    def list_all(
        self,
        category: str | None = None,
        brand: str | None = None,
    ) -> list[ProductRecord]:
        """Return stored records, most recently updated first."""
        clauses: list[str] = []
        params: list[str] = []
        if category:
            clauses.append("category = ?")
            params.append(category)
        if brand:
            clauses.append("brand = ?")
            params.append(brand)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        rows = self._conn.execute(
            f"SELECT {_PRODUCT_COLUMNS} FROM products{where} "
            "ORDER BY updated_at DESC",
            params,
        ).fetchall()
        return [self._row_to_record(r) for r in rows]

    def get_price_history(
        self, product_id: str,
    ) -> list[PriceHistoryEntry]:
        """Return all history entries for a product, oldest first."""
        rows = self._conn.execute(
            "SELECT recorded_at, lowest_price, highest_price, "
            "       average_price, currency "
            "FROM price_history WHERE product_id = ? "
            "ORDER BY recorded_at ASC, id ASC",
            (product_id,),
        ).fetchall()
        return [
            PriceHistoryEntry(
                date=datetime.fromisoformat(r[0]),
                lowest_price=r[1],
                highest_price=r[2],
                average_price=r[3],
                currency=r[4],
            )
            for r in rows
        ]

    # ── Recording ────────────────────────────────────────

    def save(
        self,
        record: ProductRecord,
        saved_at: datetime | None = None,
    ) -> ProductRecord:
        """Insert or replace *record* and append one history entry.

        Raises:
            PersistenceError: The record breaks a storage constraint
                or the database write fails.
        """
        if len(record.reviews) > Settings.MAX_REVIEWS:
            raise PersistenceError(
                f"Record has {len(record.reviews)} reviews, "
                f"more than the {Settings.MAX_REVIEWS} allowed"
            )

        now = saved_at or datetime.now()
        ts = now.isoformat()
        product_id = generate_product_id(
            record.product_name, record.source_url
        )
        existing = self.find_by_identifier(product_id)

        try:
            if existing is None:
                self._insert(product_id, record, ts)
                logger.info("Created product %s", product_id)
            else:
                self._update(product_id, record, ts)
                self._log_price_drop(existing, record)
                logger.info("Updated product %s", product_id)

            self._conn.execute(
                "INSERT INTO price_history "
                "(product_id, recorded_at, lowest_price, "
                " highest_price, average_price, currency) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    product_id,
                    ts,
                    record.lowest_price,
                    record.highest_price,
                    record.average_price,
                    Settings.CURRENCY,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise PersistenceError(
                f"Failed to save product {product_id}: {exc}"
            ) from exc

        stored = self.find_by_identifier(product_id)
        if stored is None:
            raise PersistenceError(
                f"Product {product_id} missing after save"
            )
        return stored

    def _scraped_values(
        self, record: ProductRecord,
    ) -> tuple[Any, ...]:
        return (
            record.product_name,
            record.product_type,
            json.dumps(record.photo_links, ensure_ascii=False),
            json.dumps(
                [offer_to_dict(s) for s in record.stores],
                ensure_ascii=False,
            ),
            json.dumps(
                [review_to_dict(r) for r in record.reviews],
                ensure_ascii=False,
            ),
            json.dumps(
                distribution_to_dict(record.rating_distribution),
                ensure_ascii=False,
            ),
            record.lowest_price,
            record.highest_price,
            record.average_price,
        )

    def _insert(
        self, product_id: str, record: ProductRecord, ts: str,
    ) -> None:
        self._conn.execute(
            f"INSERT INTO products ({_PRODUCT_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                product_id,
                record.product_name,
                record.category,
                record.brand,
                record.product_type,
                record.source_url,
                *self._scraped_values(record)[2:],
                ts,
                ts,
            ),
        )

    def _update(
        self, product_id: str, record: ProductRecord, ts: str,
    ) -> None:
        # category, brand, source_url and created_at stay as first stored
        self._conn.execute(
            "UPDATE products SET "
            "product_name = ?, product_type = ?, photo_links = ?, "
            "stores = ?, reviews = ?, rating_distribution = ?, "
            "lowest_price = ?, highest_price = ?, average_price = ?, "
            "updated_at = ? "
            "WHERE product_id = ?",
            (*self._scraped_values(record), ts, product_id),
        )

    def _log_price_drop(
        self, existing: ProductRecord, record: ProductRecord,
    ) -> None:
        previous = [
            h.lowest_price
            for h in existing.price_history
            if h.lowest_price is not None
        ]
        if (
            previous
            and record.lowest_price is not None
            and record.lowest_price < min(previous)
        ):
            logger.info(
                "New lowest price for %s: %.2f (was %.2f)",
                existing.product_id,
                record.lowest_price,
                min(previous),
            )
