"""
Order Schemas for Barista Bot
=============================

Kitchen queue bodies for GET /orders and PATCH /orders/{id}, and the owner's
daily numbers for GET /owner/stats.

Order Lifecycle:
----------------
1. **pending**: The customer is still ordering (never listed)
2. **new**: Closed by the customer, waiting for the kitchen
3. **in_progress**: Being made
4. **completed**: Handed over
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..engine.formatting import cart_from_state, format_line
from .chat import CamelModel


class OrderOut(BaseModel):
    """
    A closed order as the kitchen sees it.

    Attributes:
        id: Order id
        status: new, in_progress or completed
        items: Display string, e.g. "1x Latte (Small) (Hot) (Whole milk)"
        lines: One display string per line
        total_price: Order total
        created_at: When the order was first written
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: str
    items: str
    lines: List[str] = Field(default_factory=list)
    total_price: float
    created_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order) -> "OrderOut":
        state = order.cart_state if order.cart_state is not None else order.items
        lines = [format_line(line) for line in cart_from_state(state)]
        out = cls.model_validate(order)
        return out.model_copy(update={"lines": lines})


class StatusUpdate(BaseModel):
    """Body for PATCH /orders/{id}: the new kitchen status."""
    status: str = Field(..., min_length=1)


class ItemCount(CamelModel):
    """An item and how many were ordered."""
    name: str
    count: int


class StatusCounts(BaseModel):
    """Orders per status, keyed by the status names."""
    pending: int = 0
    new: int = 0
    in_progress: int = 0
    completed: int = 0


class OwnerStats(CamelModel):
    """
    Today's numbers for GET /owner/stats.

    Attributes:
        orders_today: Orders created today, open ones included
        revenue_today: Sum of their totals
        avg_order_value: revenue_today / orders_today, 0 with no orders
        top_items: Best sellers by quantity, at most eight
        status_counts: Orders per status
    """
    orders_today: int
    revenue_today: float
    avg_order_value: float
    top_items: List[ItemCount] = Field(default_factory=list)
    status_counts: StatusCounts = Field(default_factory=StatusCounts)
