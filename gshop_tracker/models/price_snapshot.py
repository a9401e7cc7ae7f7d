# gshop_tracker/models/price_snapshot.py

"""Temporal price snapshot model for price history tracking."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class PriceHistoryEntry:
    """Price statistics of a product at one scrape; never edited."""

    date: datetime
    lowest_price: float | None
    highest_price: float | None
    average_price: float | None
    currency: str = "SAR"

    def to_dict(self) -> dict[str, Any]:
        """Serialise for JSON output."""
        return {
            "date": self.date.isoformat(),
            "lowestPrice": self.lowest_price,
            "highestPrice": self.highest_price,
            "averagePrice": self.average_price,
            "currency": self.currency,
        }
