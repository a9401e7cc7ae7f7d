# gshop_tracker/models/product.py

"""Product record models for inter-module data flow."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from gshop_tracker.models.price_snapshot import PriceHistoryEntry


@dataclass
class StoreOffer:
    """One store's listing of the product on the results page."""

    store: str | None = None
    current_price: float | None = None
    original_price: float | None = None
    rating: float | None = None
    free_delivery: bool = False
    product_title: str | None = None
    product_url: str | None = None


@dataclass
class Review:
    """A single user review; only reviews with a reviewer name are kept."""

    reviewer_name: str
    rating: float | None = None
    review_text: str | None = None
    store_source: str | None = None


@dataclass
class StarBreakdown:
    """Share and count of reviews for one star value."""

    percentage: int | None = None
    review_count: int | None = None


@dataclass
class RatingDistribution:
    """Average rating, review total and the per-star breakdown."""

    average_rating: float | None = None
    total_reviews: int | None = None
    distribution: dict[int, StarBreakdown] = field(
        default_factory=lambda: dict[int, StarBreakdown]()
    )


@dataclass
class ProductRecord:
    """Root aggregate for one tracked product.

    ``product_id``, timestamps and ``price_history`` are assigned by the
    product store; a freshly parsed record leaves them empty.
    """

    product_name: str | None
    source_url: str
    category: str = "other"
    brand: str = "Unknown"
    product_type: str | None = None
    photo_links: list[str] = field(
        default_factory=lambda: list[str]()
    )
    stores: list[StoreOffer] = field(
        default_factory=lambda: list[StoreOffer]()
    )
    reviews: list[Review] = field(
        default_factory=lambda: list[Review]()
    )
    rating_distribution: RatingDistribution = field(
        default_factory=RatingDistribution
    )
    lowest_price: float | None = None
    highest_price: float | None = None
    average_price: float | None = None
    product_id: str | None = None
    price_history: list[PriceHistoryEntry] = field(
        default_factory=lambda: list[PriceHistoryEntry]()
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise to plain JSON-friendly dicts."""
        return {
            "productId": self.product_id,
            "category": self.category,
            "brand": self.brand,
            "product_name": self.product_name,
            "product_type": self.product_type,
            "photo_links": list(self.photo_links),
            "stores": [offer_to_dict(s) for s in self.stores],
            "reviews": [review_to_dict(r) for r in self.reviews],
            "rating_distribution": distribution_to_dict(
                self.rating_distribution
            ),
            "source_url": self.source_url,
            "lowestPrice": self.lowest_price,
            "highestPrice": self.highest_price,
            "averagePrice": self.average_price,
            "priceHistory": [
                h.to_dict() for h in self.price_history
            ],
            "createdAt": (
                self.created_at.isoformat()
                if self.created_at
                else None
            ),
            "updatedAt": (
                self.updated_at.isoformat()
                if self.updated_at
                else None
            ),
        }


# ── Dict codecs (storage and JSON export) ────────────────


def offer_to_dict(offer: StoreOffer) -> dict[str, Any]:
    """Serialise a store offer."""
    return {
        "store": offer.store,
        "current_price": offer.current_price,
        "original_price": offer.original_price,
        "rating": offer.rating,
        "free_delivery": offer.free_delivery,
        "product_title": offer.product_title,
        "product_url": offer.product_url,
    }


def offer_from_dict(data: dict[str, Any]) -> StoreOffer:
    """Rebuild a store offer from its stored dict."""
    return StoreOffer(
        store=data.get("store"),
        current_price=data.get("current_price"),
        original_price=data.get("original_price"),
        rating=data.get("rating"),
        free_delivery=bool(data.get("free_delivery", False)),
        product_title=data.get("product_title"),
        product_url=data.get("product_url"),
    )


def review_to_dict(review: Review) -> dict[str, Any]:
    """Serialise a review."""
    return {
        "reviewer_name": review.reviewer_name,
        "rating": review.rating,
        "review_text": review.review_text,
        "store_source": review.store_source,
    }


def review_from_dict(data: dict[str, Any]) -> Review:
    """Rebuild a review from its stored dict."""
    return Review(
        reviewer_name=str(data.get("reviewer_name", "")),
        rating=data.get("rating"),
        review_text=data.get("review_text"),
        store_source=data.get("store_source"),
    )


def distribution_to_dict(
    dist: RatingDistribution,
) -> dict[str, Any]:
    """Serialise a rating distribution; star keys become strings."""
    return {
        "average_rating": dist.average_rating,
        "total_reviews": dist.total_reviews,
        "distribution": {
            str(star): {
                "percentage": row.percentage,
                "review_count": row.review_count,
            }
            for star, row in sorted(dist.distribution.items())
        },
    }


def distribution_from_dict(
    data: dict[str, Any] | None,
) -> RatingDistribution:
    """Rebuild a rating distribution from its stored dict."""
    if not data:
        return RatingDistribution()
    rows: dict[str, Any] = data.get("distribution") or {}
    return RatingDistribution(
        average_rating=data.get("average_rating"),
        total_reviews=data.get("total_reviews"),
        distribution={
            int(star): StarBreakdown(
                percentage=row.get("percentage"),
                review_count=row.get("review_count"),
            )
            for star, row in rows.items()
        },
    )
