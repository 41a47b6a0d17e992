"""
Kitchen Queue Service for Barista Bot
=====================================

Read and update closed orders for the kitchen display. Open conversations
(status "pending") are never listed here, but they do count in the owner's
daily stats.

Order Statuses:
---------------
- new: closed by the customer, waiting for the kitchen
- in_progress: the kitchen is making it
- completed: handed over
"""

import logging
from collections import Counter
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..engine.errors import PersistenceFailure
from ..engine.formatting import cart_from_state
from ..models import Order, KITCHEN_STATUSES, STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_PENDING


logger = logging.getLogger(__name__)

# Statuses the kitchen may move an order to
KITCHEN_UPDATE_STATUSES = (STATUS_IN_PROGRESS, STATUS_COMPLETED)

# Every status an order can be in, open conversations first
ALL_STATUSES = (STATUS_PENDING,) + KITCHEN_STATUSES


class InvalidStatus(ValueError):
    """Raised when a status update names a status the kitchen cannot set."""


def list_kitchen_orders(db: Session, limit: int = 100) -> list[Order]:
    """Closed orders, newest first."""
    try:
        return (
            db.query(Order)
            .filter(Order.status.in_(KITCHEN_STATUSES))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        logger.exception("Failed to list kitchen orders")
        raise PersistenceFailure("Could not list orders") from e


def update_order_status(db: Session, order_id: str, status: str) -> Order | None:
    """
    Move a kitchen order to in_progress or completed.

    Returns:
        The updated Order, or None if no kitchen order has that id.

    Raises:
        InvalidStatus: If status is not one the kitchen may set.
    """
    if status not in KITCHEN_UPDATE_STATUSES:
        raise InvalidStatus(f"Status must be one of: {', '.join(KITCHEN_UPDATE_STATUSES)}")

    try:
        order = db.get(Order, order_id)
        if order is None or order.status not in KITCHEN_STATUSES:
            return None
        logger.info("Order %s: %s -> %s", order_id, order.status, status)
        order.status = status
        db.commit()
        db.refresh(order)
        return order
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to update order %s", order_id)
        raise PersistenceFailure("Could not update order") from e


# Most popular items reported in owner stats
TOP_ITEMS_LIMIT = 8


def start_of_today(now: datetime | None = None) -> datetime:
    """Midnight UTC of the current day, the day created_at is stored in."""
    now = now or datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def owner_stats(db: Session, since: datetime | None = None) -> dict:
    """
    Today's pulse for the store owner.

    Counts every order created since midnight, open ones included: number of
    orders, revenue, average order value, the best-selling items by quantity
    and how many orders sit in each status.

    Args:
        db: Database session
        since: Start of the window (default: start of today, UTC)

    Raises:
        PersistenceFailure: If the orders cannot be read.
    """
    since = since or start_of_today()
    try:
        orders = (
            db.query(Order)
            .filter(Order.status.in_(ALL_STATUSES), Order.created_at >= since)
            .order_by(Order.created_at.desc())
            .all()
        )
    except SQLAlchemyError as e:
        logger.exception("Failed to load owner stats")
        raise PersistenceFailure("Could not load stats") from e

    revenue = sum(order.total_price or 0.0 for order in orders)
    item_counts: Counter = Counter()
    status_counts = {status: 0 for status in ALL_STATUSES}
    for order in orders:
        state = order.cart_state if order.cart_state is not None else order.items
        for line in cart_from_state(state):
            item_counts[line.item_name] += line.quantity
        status_counts[order.status] += 1

    top_items = sorted(item_counts.items(), key=lambda kv: (-kv[1], kv[0]))[:TOP_ITEMS_LIMIT]
    return {
        "orders_today": len(orders),
        "revenue_today": round(revenue, 2),
        "avg_order_value": round(revenue / len(orders), 2) if orders else 0.0,
        "top_items": [{"name": name, "count": count} for name, count in top_items],
        "status_counts": status_counts,
    }
