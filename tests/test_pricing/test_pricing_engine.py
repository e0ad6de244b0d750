"""
Tests for the multi-currency pricing engine.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from printshop.core.exceptions import InvalidRateError, ValidationFailedError
from printshop.services.pricing.engine import (
    LineRequest,
    PricingEngine,
    format_money,
    to_decimal,
)


@pytest.fixture
def engine() -> PricingEngine:
    return PricingEngine(scale=4)


class TestPriceLineItem:
    """Unit price derivation from base price, markup and rate."""

    def test_markup_and_conversion(self, engine: PricingEngine):
        assert engine.price_line_item(Decimal("100"), 20, Decimal("3.75")) == Decimal("32.0000")

    def test_base_currency_without_markup(self, engine: PricingEngine):
        assert engine.price_line_item("100", 0, 1) == Decimal("100.0000")

    def test_rounds_half_up(self, engine: PricingEngine):
        # 10 / 3 = 3.33333...
        assert engine.price_line_item("10", 0, "3") == Decimal("3.3333")
        # 0.00005 rounds up at four places
        assert engine.price_line_item("0.0001", 0, "2") == Decimal("0.0001")

    def test_float_inputs_do_not_drift(self, engine: PricingEngine):
        assert engine.price_line_item(0.1, 0, 1) == Decimal("0.1000")

    @pytest.mark.parametrize("rate", [0, "0", -1, Decimal("-3.75")])
    def test_non_positive_rate(self, engine: PricingEngine, rate):
        with pytest.raises(InvalidRateError):
            engine.price_line_item(100, 0, rate)

    def test_invalid_rate_is_a_validation_failure(self, engine: PricingEngine):
        with pytest.raises(ValidationFailedError):
            engine.price_line_item(100, 0, "abc")

    def test_negative_markup(self, engine: PricingEngine):
        with pytest.raises(ValidationFailedError, match="negative"):
            engine.price_line_item(100, -5, 1)

    def test_negative_base_price(self, engine: PricingEngine):
        with pytest.raises(ValidationFailedError, match="negative"):
            engine.price_line_item(-1, 0, 1)


class TestPriceLines:
    def test_line_total(self, engine: PricingEngine):
        line = engine.price_line(
            LineRequest(quantity=3, base_unit_price=Decimal("100")), 20, "3.75"
        )

        assert line.unit_price == Decimal("32.0000")
        assert line.item_total == Decimal("96.0000")

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
    def test_invalid_quantity(self, engine: PricingEngine, quantity):
        with pytest.raises(ValidationFailedError):
            engine.price_line(LineRequest(quantity=quantity, base_unit_price=Decimal("1")), 0, 1)

    def test_empty_lines(self, engine: PricingEngine):
        with pytest.raises(ValidationFailedError, match="At least one line item"):
            engine.price_lines([], 0, 1)

    def test_one_bad_line_prices_nothing(self, engine: PricingEngine):
        lines = [
            LineRequest(quantity=1, base_unit_price=Decimal("10")),
            LineRequest(quantity=0, base_unit_price=Decimal("10")),
        ]

        with pytest.raises(ValidationFailedError):
            engine.price_lines(lines, 0, 1)

    def test_reprice_keeps_base_prices(self, engine: PricingEngine):
        items = [
            SimpleNamespace(
                quantity=3,
                base_unit_price=Decimal("100"),
                product_id=None,
                description="Business Cards",
            )
        ]

        repriced = engine.reprice(items, 20, "3.75")

        assert repriced[0].base_unit_price == Decimal("100")
        assert repriced[0].unit_price == Decimal("32.0000")
        assert repriced[0].description == "Business Cards"


class TestTotals:
    def test_totals_in_both_currencies(self, engine: PricingEngine):
        totals = engine.compute_totals([Decimal("96"), Decimal("4")], Decimal("3.75"))

        assert totals.total_foreign == Decimal("100.0000")
        assert totals.total_company == Decimal("375.0000")

    def test_quote_in_usd(self, engine: PricingEngine):
        priced = engine.price_lines(
            [LineRequest(quantity=3, base_unit_price=Decimal("100"))], 20, "3.75"
        )
        totals = engine.compute_totals([line.item_total for line in priced], "3.75")

        assert totals.total_foreign == Decimal("96.0000")
        assert totals.total_company == Decimal("360.0000")

    def test_company_total_is_exact_product(self, engine: PricingEngine):
        priced = engine.price_lines(
            [LineRequest(quantity=1, base_unit_price=Decimal("10"))], 0, "3.6725"
        )
        totals = engine.compute_totals([line.item_total for line in priced], "3.6725")

        assert totals.total_foreign == Decimal("2.7229")
        assert totals.total_company == Decimal("9.99985025")
        assert totals.total_company == totals.total_foreign * Decimal("3.6725")

    def test_rates_keep_eight_digits(self, engine: PricingEngine):
        assert engine.validate_rate("3.672500004") == Decimal("3.67250000")

        totals = engine.compute_totals([Decimal("1")], "3.672500004")

        assert totals.total_company == Decimal("3.6725")

    def test_rate_too_large_is_invalid(self, engine: PricingEngine):
        with pytest.raises(InvalidRateError):
            engine.validate_rate("1e30")

    def test_totals_reject_invalid_rate(self, engine: PricingEngine):
        with pytest.raises(InvalidRateError):
            engine.compute_totals([Decimal("1")], 0)


def test_to_decimal_rejects_non_numbers():
    with pytest.raises(ValidationFailedError):
        to_decimal("twelve", "amount")
    with pytest.raises(ValidationFailedError):
        to_decimal(float("nan"), "amount")


def test_format_money():
    assert format_money(Decimal("1234.5"), "AED") == "1,234.50 AED"
    assert format_money(Decimal("0.005")) == "0.01"
