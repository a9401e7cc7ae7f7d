# tests/test_field_extractor.py

"""Tests for number, rating and price-statistics extraction."""

import unittest

from gshop_tracker.models.product import StoreOffer
from gshop_tracker.parsers.field_extractor import (
    PriceStats,
    aggregate_prices,
    extract_count,
    extract_number,
    format_rating,
)


class TestExtractNumber(unittest.TestCase):
    """Verify price text parsing."""

    def test_arabic_digits(self) -> None:
        """Arabic-Indic digits are parsed."""
        self.assertEqual(extract_number("١٢٣"), 123)

    def test_thousands_and_currency(self) -> None:
        """Commas are dropped and the currency suffix ignored."""
        self.assertEqual(extract_number("1,234.5 ر.س"), 1234.5)

    def test_arabic_separators(self) -> None:
        """Arabic thousands separator is handled like a comma."""
        self.assertEqual(extract_number("٤٬٥٩٩ ر.س"), 4599.0)

    def test_empty(self) -> None:
        """Empty text yields None."""
        self.assertIsNone(extract_number(""))

    def test_none(self) -> None:
        """Missing text yields None."""
        self.assertIsNone(extract_number(None))

    def test_no_digits(self) -> None:
        """Text without digits yields None."""
        self.assertIsNone(extract_number("no digits"))

    def test_lone_period(self) -> None:
        """A period with no digits does not parse."""
        self.assertIsNone(extract_number("ر.س"))

    def test_prefix_currency(self) -> None:
        """Currency before the amount is ignored too."""
        self.assertEqual(extract_number("SAR 899"), 899.0)


class TestExtractCount(unittest.TestCase):
    """Verify review-count parsing."""

    def test_count_with_comma(self) -> None:
        """Thousands separators are removed."""
        self.assertEqual(extract_count("1,435 مراجعة"), 1435)

    def test_arabic_count(self) -> None:
        """Arabic-Indic digits are converted."""
        self.assertEqual(extract_count("٢٩"), 29)

    def test_no_count(self) -> None:
        """Text without digits yields None."""
        self.assertIsNone(extract_count("reviews"))
        self.assertIsNone(extract_count(""))


class TestFormatRating(unittest.TestCase):
    """Verify rating coercion."""

    def test_float_rounded(self) -> None:
        """Numbers are rounded to one decimal."""
        self.assertEqual(format_rating(4.678), 4.7)

    def test_exact_half_rounds_up(self) -> None:
        """An exact half goes up, not to the even neighbour."""
        self.assertEqual(format_rating(4.25), 4.3)
        self.assertEqual(format_rating("4,25"), 4.3)
        self.assertEqual(format_rating(4.75), 4.8)

    def test_int(self) -> None:
        """Integers become floats."""
        self.assertEqual(format_rating(4), 4.0)

    def test_comma_decimal(self) -> None:
        """A comma is read as the decimal point."""
        self.assertEqual(format_rating("4,5"), 4.5)

    def test_arabic_decimal(self) -> None:
        """Arabic digits and decimal separator are handled."""
        self.assertEqual(format_rating("٤٫٣"), 4.3)

    def test_trailing_text(self) -> None:
        """Trailing words after the number are ignored."""
        self.assertEqual(format_rating("4.6 out of 5"), 4.6)

    def test_none(self) -> None:
        """None yields None."""
        self.assertIsNone(format_rating(None))

    def test_unparseable(self) -> None:
        """Text without a leading number yields None."""
        self.assertIsNone(format_rating("abc"))
        self.assertIsNone(format_rating(""))


class TestAggregatePrices(unittest.TestCase):
    """Verify min / max / mean over offers."""

    def test_dict_offers(self) -> None:
        """Offers without a price are ignored."""
        stats = aggregate_prices([
            {"current_price": 100},
            {"current_price": 200},
            {"current_price": None},
        ])
        self.assertEqual(stats, PriceStats(100.0, 200.0, 150.0))

    def test_empty(self) -> None:
        """No offers yields all None."""
        self.assertEqual(aggregate_prices([]), PriceStats(None, None, None))

    def test_no_valid_prices(self) -> None:
        """Offers without usable prices yield all None."""
        stats = aggregate_prices([
            {"current_price": None},
            {"current_price": "n/a"},
        ])
        self.assertIsNone(stats.lowest)
        self.assertIsNone(stats.highest)
        self.assertIsNone(stats.average)

    def test_string_prices_with_commas(self) -> None:
        """Prices stored as strings with commas are coerced."""
        stats = aggregate_prices([
            {"current_price": "1,000"},
            {"current_price": 2000.0},
        ])
        self.assertEqual(stats.lowest, 1000.0)
        self.assertEqual(stats.highest, 2000.0)
        self.assertEqual(stats.average, 1500.0)

    def test_average_rounded_to_two_places(self) -> None:
        """The mean is rounded to 2 decimals."""
        stats = aggregate_prices([
            StoreOffer(current_price=10.0),
            StoreOffer(current_price=10.0),
            StoreOffer(current_price=10.01),
        ])
        self.assertEqual(stats.average, 10.0)

    def test_average_half_cent_rounds_up(self) -> None:
        """A mean ending in exactly half a cent rounds up."""
        stats = aggregate_prices([
            StoreOffer(current_price=100.25),
            StoreOffer(current_price=100.0),
        ])
        self.assertEqual(stats.average, 100.13)

    def test_ordering_invariant(self) -> None:
        """lowest <= average <= highest."""
        stats = aggregate_prices([
            StoreOffer(current_price=p) for p in (4599.0, 4799.0, 5199.0)
        ])
        assert stats.lowest is not None
        assert stats.average is not None
        assert stats.highest is not None
        self.assertLessEqual(stats.lowest, stats.average)
        self.assertLessEqual(stats.average, stats.highest)
        self.assertEqual(stats.average, 4865.67)


if __name__ == "__main__":
    unittest.main()
