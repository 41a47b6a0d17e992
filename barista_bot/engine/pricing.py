"""
Pricing Engine for Cart Lines.

Prices are recomputed from the catalog on every turn. A total proposed by the
language step is never used; when it disagrees with the computed total the
difference is logged.

    unit price  = base(item, size) + milk surcharge + sum(modifier surcharge * count)
    line price  = unit price * quantity
    order total = sum(line price)

All amounts are Decimals rounded half-up to cents.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from .catalog import MenuCatalog, get_catalog
from .schemas import Cart, CartLine

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class PricingEngine:
    """
    Prices cart lines against the menu catalog.

    Args:
        catalog: Menu to price against. Defaults to the shared catalog.
    """

    def __init__(self, catalog: MenuCatalog | None = None):
        self.catalog = catalog or get_catalog()

    def unit_price(self, line: CartLine) -> Decimal:
        item = self.catalog.lookup(line.item_name)
        if item is None:
            logger.warning("No price for unknown item %r", line.item_name)
            return Decimal("0.00")
        return to_cents(self.catalog.price_of(item, line.size, line.milk, line.modifiers))

    def price_line(self, line: CartLine) -> CartLine:
        """Return the line with unit_price and line_price filled in."""
        unit = self.unit_price(line)
        return line.with_changes(unit_price=unit, line_price=to_cents(unit * line.quantity))

    def price_cart(self, cart: Iterable[CartLine]) -> Cart:
        return tuple(self.price_line(line) for line in cart)

    def order_total(self, cart: Iterable[CartLine]) -> Decimal:
        """Sum of line prices. Lines are priced first if they have not been."""
        total = Decimal("0.00")
        for line in cart:
            total += self.price_line(line).line_price
        return to_cents(total)

    def check_proposed_total(self, proposed: float | None, actual: Decimal) -> None:
        """Log when the language step's total disagrees with the real one."""
        if proposed is None:
            return
        if to_cents(Decimal(str(proposed))) != actual:
            logger.info("Ignoring proposed total %.2f; computed %s", proposed, actual)
