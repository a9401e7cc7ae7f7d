# gshop_tracker/parsers/field_extractor.py

"""Pure helpers turning page text into numbers, ratings and price stats."""

import logging
import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from gshop_tracker.parsers.numerals import normalize_numerals

logger = logging.getLogger("gshop_tracker.parser")

_NUMERIC_RUN_RE = re.compile(r"[0-9,.]+")
_COUNT_RUN_RE = re.compile(r"[0-9,٠-٩]+")
# Longest leading float, the way a lenient float parser reads it
_LEADING_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")

_ONE_PLACE = Decimal("0.1")
_TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class PriceStats:
    """Lowest / highest / average current price across offers."""

    lowest: float | None = None
    highest: float | None = None
    average: float | None = None


def _round_half_up(value: float, places: Decimal) -> float:
    """Round *value* with exact halves going away from zero.

    The exact binary value is quantized, so ``4.25`` becomes ``4.3``
    while ``1.005`` at two places (stored just below the half) stays
    ``1.0``.
    """
    if not math.isfinite(value):
        return value
    return float(Decimal(value).quantize(places, rounding=ROUND_HALF_UP))


def _parse_leading_float(text: str) -> float | None:
    """Parse the numeric prefix of *text*, or ``None`` if there is none."""
    match = _LEADING_FLOAT_RE.match(text.strip())
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def extract_number(text: str | None) -> float | None:
    """Extract a number from text like ``'1,234.5 ر.س'`` or ``'١٢٣'``.

    All digit/comma/period runs are concatenated, thousands
    separators dropped, and the leading float parsed.
    """
    westernized = normalize_numerals(text)
    if not westernized:
        return None
    runs = _NUMERIC_RUN_RE.findall(westernized)
    if not runs:
        return None
    return _parse_leading_float("".join(runs).replace(",", ""))


def extract_count(text: str | None) -> int | None:
    """Extract the first integer count from text like ``'1,435 مراجعة'``."""
    if not text:
        return None
    match = _COUNT_RUN_RE.search(text)
    if not match:
        return None
    digits = (normalize_numerals(match.group(0)) or "").replace(",", "")
    return int(digits) if digits.isdigit() else None


def format_rating(value: str | float | int | None) -> float | None:
    """Coerce a rating to a number rounded to one decimal place.

    Strings use a comma as decimal point (``'4,5'`` -> ``4.5``).
    Unparseable input yields ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _round_half_up(float(value), _ONE_PLACE)
    westernized = normalize_numerals(value)
    if not westernized:
        return None
    parsed = _parse_leading_float(westernized.replace(",", "."))
    if parsed is None:
        return None
    return _round_half_up(parsed, _ONE_PLACE)


def _coerce_price(raw: Any) -> float | None:
    """Accept numeric prices and strings with thousands commas."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        price = float(raw)
    else:
        try:
            price = float(str(raw).replace(",", ""))
        except ValueError:
            logger.debug("Ignoring non-numeric price %r", raw)
            return None
    return None if math.isnan(price) else price


def _current_price_of(offer: Any) -> Any:
    """Read ``current_price`` from a StoreOffer or a plain dict."""
    if isinstance(offer, dict):
        return offer.get("current_price")
    return getattr(offer, "current_price", None)


def aggregate_prices(offers: Iterable[Any]) -> PriceStats:
    """Compute min / max / mean (2 dp) over offers with a valid price."""
    prices: list[float] = []
    for offer in offers:
        price = _coerce_price(_current_price_of(offer))
        if price is not None:
            prices.append(price)

    if not prices:
        return PriceStats()

    return PriceStats(
        lowest=min(prices),
        highest=max(prices),
        average=_round_half_up(sum(prices) / len(prices), _TWO_PLACES),
    )
