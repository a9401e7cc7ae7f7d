# gshop_tracker/scrapers/page_parser.py

"""Parser turning a Google Shopping product page snapshot into a ProductRecord."""

import logging
import re
from typing import Any

from bs4 import BeautifulSoup, Tag

from gshop_tracker.config.settings import Settings, load_selectors
from gshop_tracker.filters.classifier import (
    classify_brand,
    classify_category,
)
from gshop_tracker.models.product import (
    ProductRecord,
    RatingDistribution,
    Review,
    StarBreakdown,
    StoreOffer,
)
from gshop_tracker.parsers.field_extractor import (
    aggregate_prices,
    extract_count,
    extract_number,
    format_rating,
)
from gshop_tracker.parsers.numerals import normalize_numerals

_WIDTH_RE = re.compile(r"width:\s*(\d+)%")

# Rows in the per-star breakdown (5 stars down to 1)
_STAR_ROWS = 5


def _select(node: Tag, selector: str) -> list[Tag]:
    """All matches of *selector*; an unset selector matches nothing."""
    return list(node.select(selector)) if selector else []


def _joined_text(node: Tag, selector: str) -> str:
    """Concatenate the text of every match of *selector*, stripped."""
    return "".join(el.get_text() for el in _select(node, selector)).strip()


def _first_text(node: Tag, selector: str) -> str:
    """Text of the first match of *selector*, stripped, or ``''``."""
    if not selector:
        return ""
    el = node.select_one(selector)
    return el.get_text().strip() if el else ""


class GoogleShoppingParser:
    """Extracts offers, reviews and the rating breakdown from page HTML.

    Selectors come from ``selectors.json``; any selector that matches
    nothing leaves its field at ``None`` / default instead of raising,
    so selector drift shows up as a sparse record rather than a crash.
    The parser holds no per-page state, so parsing the same snapshot
    twice yields identical records.
    """

    def __init__(
        self, selectors: dict[str, Any] | None = None,
    ) -> None:
        self.logger = logging.getLogger("gshop_tracker.parser")
        self.settings = Settings()
        self.selectors: dict[str, Any] = (
            selectors if selectors is not None else load_selectors()
        )
        self._store_sel: dict[str, Any] = self.selectors.get("stores", {})
        self._product_sel: dict[str, Any] = self.selectors.get(
            "product", {}
        )
        self._review_sel: dict[str, Any] = self.selectors.get(
            "reviews", {}
        )
        self._dist_sel: dict[str, Any] = self.selectors.get(
            "rating_distribution", {}
        )

    # ------------------------------------------------------------------
    # Public entry-point
    # ------------------------------------------------------------------

    def parse_html(
        self,
        html: str,
        url: str,
        category: str | None = None,
        brand: str | None = None,
    ) -> ProductRecord:
        """Parse raw page HTML; see :meth:`parse`."""
        return self.parse(
            BeautifulSoup(html, "lxml"), url, category, brand
        )

    def parse(
        self,
        soup: BeautifulSoup,
        url: str,
        category: str | None = None,
        brand: str | None = None,
    ) -> ProductRecord:
        """Build a ProductRecord from a loaded page.

        Args:
            soup: Snapshot of the fully expanded product page.
            url: The URL the snapshot was taken from.
            category: Explicit category; wins over name inference.
            brand: Explicit brand; wins over name inference.

        Returns:
            The record without identifier, timestamps or history.
        """
        containers = _select(soup, self._store_sel.get("container", ""))

        # Title markup is repeated in every offer block; the first is canonical
        product_name: str | None = None
        if containers:
            product_name = (
                _joined_text(
                    containers[0],
                    self._store_sel.get("product_title", ""),
                )
                or None
            )

        stores = [self._parse_offer(c) for c in containers]
        reviews = self._parse_reviews(soup)
        distribution = self._parse_rating_distribution(soup)
        stats = aggregate_prices(stores)

        record = ProductRecord(
            product_name=product_name,
            source_url=url,
            category=category or classify_category(product_name),
            brand=brand or classify_brand(product_name),
            product_type=self._parse_product_type(soup),
            photo_links=self._collect_photos(soup),
            stores=stores,
            reviews=reviews,
            rating_distribution=distribution,
            lowest_price=stats.lowest,
            highest_price=stats.highest,
            average_price=stats.average,
        )
        self.logger.info(
            "Parsed %r: %d stores, %d reviews, price %s-%s",
            product_name,
            len(stores),
            len(reviews),
            stats.lowest,
            stats.highest,
        )
        return record

    # ------------------------------------------------------------------
    # Product-level fields
    # ------------------------------------------------------------------

    def _collect_photos(self, soup: BeautifulSoup) -> list[str]:
        """Collect up to MAX_PHOTOS distinct image URLs, in page order."""
        photos: list[str] = []
        selector = self._product_sel.get("images", "")
        if not selector:
            return photos
        for el in soup.select(selector):
            if len(photos) >= self.settings.MAX_PHOTOS:
                break
            raw_src = el.get("src")
            src = str(raw_src) if raw_src else ""
            if src and src not in photos:
                photos.append(src)
        return photos

    def _parse_product_type(self, soup: BeautifulSoup) -> str | None:
        """Return the last non-empty product-type label."""
        product_type: str | None = None
        selector = self._product_sel.get("type", "")
        if not selector:
            return None
        for el in soup.select(selector):
            text = el.get_text().strip()
            if text:
                product_type = text
        return product_type

    # ------------------------------------------------------------------
    # Store offers
    # ------------------------------------------------------------------

    def _first_candidate_text(
        self,
        container: Tag,
        candidates: list[str],
        require_text: bool,
    ) -> str | None:
        """Walk price selector candidates in order.

        With ``require_text`` off the first matching element wins even
        when its text is empty; with it on, empty matches are skipped.
        """
        text: str | None = None
        for selector in candidates:
            el = container.select_one(selector)
            if el is None:
                continue
            text = el.get_text().strip()
            if text or not require_text:
                break
        return text

    def _parse_offer(self, container: Tag) -> StoreOffer:
        """Parse one store offer block."""
        sel = self._store_sel

        price_text = self._first_candidate_text(
            container, sel.get("current_price", []), require_text=False
        )
        current_price = extract_number(price_text)

        old_price_text = self._first_candidate_text(
            container, sel.get("original_price", []), require_text=True
        )
        original_price = extract_number(old_price_text) or current_price

        delivery_text = _joined_text(
            container, sel.get("delivery", "")
        ).lower()
        keywords: list[str] = sel.get("free_delivery_keywords", [])
        free_delivery = any(k in delivery_text for k in keywords)

        url_selector: str = sel.get("product_url", "")
        url_el = container.select_one(url_selector) if url_selector else None
        raw_href = url_el.get("href") if url_el else None

        return StoreOffer(
            store=_joined_text(container, sel.get("name", "")) or None,
            current_price=current_price,
            original_price=original_price,
            rating=format_rating(
                _first_text(container, sel.get("rating", ""))
            ),
            free_delivery=free_delivery,
            product_title=(
                _joined_text(container, sel.get("product_title", ""))
                or None
            ),
            product_url=str(raw_href) if raw_href else None,
        )

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def _parse_review(self, container: Tag) -> Review | None:
        """Parse one review block; ``None`` when it has no reviewer name."""
        sel = self._review_sel
        name = _joined_text(container, sel.get("reviewer_name", ""))
        if not name:
            return None

        rating: float | None = None
        rating_boxes = _select(container, sel.get("rating_container", ""))
        if rating_boxes:
            rating_text = "".join(
                _joined_text(box, sel.get("rating_value", ""))
                for box in rating_boxes
            )
            rating = format_rating(rating_text)

        review_text = (
            _joined_text(container, sel.get("full_text", ""))
            or _joined_text(container, sel.get("short_text", ""))
        )
        source = _joined_text(
            container, sel.get("store_source", "")
        ).replace(sel.get("store_source_prefix", ""), "", 1)

        return Review(
            reviewer_name=name,
            rating=rating,
            review_text=review_text or None,
            store_source=source.strip() or None,
        )

    def _parse_reviews(self, soup: BeautifulSoup) -> list[Review]:
        """Parse every named review, capped at MAX_REVIEWS."""
        containers = _select(soup, self._review_sel.get("container", ""))
        self.logger.debug(
            "Found %d review containers to parse", len(containers)
        )
        reviews: list[Review] = []
        for container in containers:
            review = self._parse_review(container)
            if review is not None:
                reviews.append(review)

        cap = self.settings.MAX_REVIEWS
        if len(reviews) > cap:
            self.logger.warning(
                "Truncating %d reviews to the %d review cap",
                len(reviews),
                cap,
            )
            reviews = reviews[:cap]
        return reviews

    # ------------------------------------------------------------------
    # Rating distribution
    # ------------------------------------------------------------------

    @staticmethod
    def _row_text(rows: list[Tag], index: int) -> str:
        """Stripped text of ``rows[index]`` or ``''`` when absent."""
        return rows[index].get_text().strip() if index < len(rows) else ""

    def _parse_rating_distribution(
        self, soup: BeautifulSoup,
    ) -> RatingDistribution:
        """Parse the average, the total and the 5-row star breakdown."""
        sel = self._dist_sel
        dist = RatingDistribution()

        avg_text = _joined_text(soup, sel.get("average_rating", ""))
        if avg_text:
            dist.average_rating = format_rating(avg_text)

        total_text = _joined_text(soup, sel.get("total_reviews", ""))
        if total_text:
            dist.total_reviews = extract_count(total_text)

        for container in _select(
            soup, sel.get("distribution_container", "")
        ):
            stars = _select(container, sel.get("star_value", ""))
            bars = _select(container, sel.get("percentage", ""))
            counts = _select(container, sel.get("review_count", ""))

            for i in range(_STAR_ROWS):
                star_text = self._row_text(stars, i)
                if not star_text:
                    continue

                percentage: int | None = None
                if i < len(bars):
                    style = str(bars[i].get("style") or "")
                    match = _WIDTH_RE.search(style)
                    if match:
                        percentage = int(match.group(1))

                review_count = extract_count(self._row_text(counts, i))

                if percentage is None and review_count is None:
                    continue
                star = extract_count(normalize_numerals(star_text))
                if star is None:
                    continue
                dist.distribution[star] = StarBreakdown(
                    percentage=percentage,
                    review_count=review_count,
                )

        return dist
