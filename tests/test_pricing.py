"""
Tests for the pricing engine.
"""
import logging
from decimal import Decimal

import pytest

from barista_bot.engine import PricingEngine


@pytest.fixture
def pricing(catalog):
    return PricingEngine(catalog)


class TestLinePrices:
    """Unit and line prices."""

    def test_base_price(self, pricing, make_line):
        """Test that a small whole-milk latte is $4.50."""
        line = pricing.price_line(make_line("Latte", size="small", temperature="hot", milk="whole"))
        assert line.unit_price == Decimal("4.50")
        assert line.line_price == Decimal("4.50")

    def test_surcharges_and_quantity(self, pricing, make_line):
        """Test milk and shot surcharges multiplied by quantity."""
        line = pricing.price_line(
            make_line("Latte", quantity=2, size="large", milk="almond", modifiers={"espresso_shot": 2})
        )
        assert line.unit_price == Decimal("9.25")
        assert line.line_price == Decimal("18.50")

    def test_price_line_keeps_everything_else(self, pricing, make_line):
        """Test that pricing only fills in the price fields."""
        original = make_line("Mocha", size="small", temperature="iced", milk="oat")
        priced = pricing.price_line(original)
        assert priced.with_changes(unit_price=Decimal("0.00"), line_price=Decimal("0.00")) == original

    def test_unknown_item_is_free(self, pricing, make_line):
        """Test that an item missing from the menu prices at zero."""
        assert pricing.unit_price(make_line("Cappuccino")) == Decimal("0.00")


class TestOrderTotal:
    """Order totals."""

    def test_total(self, pricing, make_line):
        """Test that the total sums line prices."""
        cart = (
            make_line("Latte", size="small", temperature="hot", milk="whole"),
            make_line("Chocolate Chip Cookie", quantity=2),
        )
        assert pricing.order_total(cart) == Decimal("9.50")

    def test_empty_cart(self, pricing):
        """Test that an empty cart totals zero."""
        assert pricing.order_total(()) == Decimal("0.00")

    def test_price_cart_then_total(self, pricing, make_line):
        """Test that totalling a priced cart gives the same answer."""
        cart = pricing.price_cart((make_line("Cold Brew", size="large", temperature="iced"),))
        assert cart[0].line_price == Decimal("5.00")
        assert pricing.order_total(cart) == Decimal("5.00")


class TestProposedTotal:
    """Totals from the language step are never trusted."""

    def test_disagreement_is_logged(self, pricing, caplog):
        """Test that a wrong proposed total is logged and ignored."""
        with caplog.at_level(logging.INFO, logger="barista_bot.engine.pricing"):
            pricing.check_proposed_total(3.99, Decimal("4.50"))
        assert "Ignoring proposed total" in caplog.text

    def test_agreement_is_silent(self, pricing, caplog):
        """Test that a matching total logs nothing."""
        with caplog.at_level(logging.INFO, logger="barista_bot.engine.pricing"):
            pricing.check_proposed_total(4.5, Decimal("4.50"))
            pricing.check_proposed_total(None, Decimal("4.50"))
        assert caplog.text == ""
