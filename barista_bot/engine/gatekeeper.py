"""
Closing Gatekeeper.

Decides whether an order may close. Phases:

    COLLECTING      default, still taking items or details
    READY_TO_CLOSE  every line complete and the customer said they are done
    CLOSED          terminal; the session is archived and a new one starts

A closing request on an incomplete cart is vetoed: the decision reports the
first incomplete line and what it still needs, and the cart is left alone.
"""

import logging
from enum import Enum
from typing import Iterable, Sequence

from .catalog import MenuCatalog, get_catalog
from .schemas import CartLine, CompletionDecision, MissingField

logger = logging.getLogger(__name__)


class OrderPhase(str, Enum):
    """Lifecycle phases of an order as seen by the gatekeeper."""
    COLLECTING = "collecting"
    READY_TO_CLOSE = "ready_to_close"
    CLOSED = "closed"


class ClosingGatekeeper:
    """Completeness checks and the close/veto decision."""

    def __init__(self, catalog: MenuCatalog | None = None):
        self.catalog = catalog or get_catalog()

    def missing_fields(self, line: CartLine) -> list[str]:
        """Fields a line still needs, in the order they are asked."""
        item = self.catalog.lookup(line.item_name)
        if item is None or item.is_pastry:
            return []
        missing = []
        if item.has_size_axis and line.size is None:
            missing.append("size")
        if len(self.catalog.legal_temperatures(item)) > 1 and line.temperature is None:
            missing.append("temperature")
        if self.catalog.requires_milk(item) and line.milk is None:
            missing.append("milk")
        return missing

    def is_complete(self, line: CartLine) -> bool:
        return not self.missing_fields(line)

    def first_incomplete(self, cart: Sequence[CartLine]) -> tuple[int, list[str]] | None:
        for index, line in enumerate(cart):
            missing = self.missing_fields(line)
            if missing:
                return index, missing
        return None

    def phase(self, cart: Sequence[CartLine], closing: bool) -> OrderPhase:
        if closing and cart and self.first_incomplete(cart) is None:
            return OrderPhase.READY_TO_CLOSE
        return OrderPhase.COLLECTING

    def decide(self, cart: Iterable[CartLine], closing: bool) -> CompletionDecision:
        """
        Decide whether the order closes this turn.

        Args:
            cart: The validated cart.
            closing: Whether the customer asked to finish (already re-checked
                against the utterance).

        Returns:
            CompletionDecision. complete is True only for a closing request on
            a non-empty cart whose lines are all complete. missing lists the
            first incomplete line's fields whether or not closing was asked.
        """
        cart = tuple(cart)
        gap = self.first_incomplete(cart)
        missing = [] if gap is None else [MissingField(line_index=gap[0], field=f) for f in gap[1]]
        complete = self.phase(cart, closing) == OrderPhase.READY_TO_CLOSE
        if closing and not complete and cart:
            logger.info("Close vetoed: line %d missing %s", gap[0], ", ".join(gap[1]))
        return CompletionDecision(complete=complete, missing=missing)
