"""
Session Lifecycle Service for Barista Bot
=========================================

This module owns the OrderSession: the only place a cart is read from or
written to the database. Every other component works on immutable cart
snapshots and hands the result back here.

Lifecycle:
----------
1. **No session**: A conversation starts with no id and an empty cart. Nothing
   is written until a turn produces at least one line.
2. **Open**: The first non-empty cart inserts an Order row with status
   "pending" and the id is returned to the client. Later turns update it.
   Clearing the cart keeps the row (and the id) open with no lines.
3. **Closed**: When the gatekeeper accepts a close, the row moves to status
   "new" (the kitchen queue), the receipt is returned, and the id is dropped.
   The next turn starts a fresh session. A closed row is never reopened.

Storage:
--------
Order.cart_state holds the structured cart (JSON list of lines) and
Order.items the comma-joined display string the kitchen reads. Rows written
before cart_state existed are read back from the display string.

Concurrency:
------------
Each turn reads, computes and writes; concurrent turns on the same session are
last-write-wins. Database errors are rolled back and re-raised as
PersistenceFailure so the caller can answer 503 with the stored cart intact.

Usage:
------
    manager = SessionLifecycleManager(db)
    session = manager.open(order_id)
    outcome = engine.process_turn(session.cart, proposal, message, history)
    session = manager.apply(session, outcome.cart, closed=outcome.closed)
"""

import logging
import uuid
from decimal import Decimal
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..engine.errors import PersistenceFailure
from ..engine.formatting import cart_from_state, cart_to_state, format_cart, format_line
from ..engine.pricing import PricingEngine
from ..engine.schemas import Cart, CartLine, Receipt
from ..models import Order, STATUS_NEW, STATUS_PENDING


logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class OrderSession(BaseModel):
    """Snapshot of a conversation's order. id is None until first persisted."""

    id: str | None = None
    lines: list[CartLine] = Field(default_factory=list)
    total: Decimal = Decimal("0.00")
    state: SessionState = SessionState.OPEN
    receipt: Receipt | None = None

    @property
    def cart(self) -> Cart:
        return tuple(self.lines)

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED


class SessionLifecycleManager:
    """
    Opens, updates and closes order sessions.

    Args:
        db: SQLAlchemy session for this request.
        pricing: Pricing engine used to total carts before writing.
    """

    def __init__(self, db: Session, pricing: PricingEngine | None = None):
        self.db = db
        self.pricing = pricing or PricingEngine()

    def open(self, existing_id: str | None) -> OrderSession:
        """
        Load an open session, or start a new one.

        Unknown ids and ids of closed orders start a fresh session; a closed
        order is never reopened.
        """
        if not existing_id:
            return OrderSession()
        try:
            order = self.db.get(Order, existing_id)
        except SQLAlchemyError as e:
            self._fail("load order %s" % existing_id, e)

        if order is None:
            logger.info("Order %s not found, starting a new session", existing_id)
            return OrderSession()
        if order.status != STATUS_PENDING:
            logger.info("Order %s is %s, starting a new session", existing_id, order.status)
            return OrderSession()

        state = order.cart_state if order.cart_state is not None else order.items
        cart = self.pricing.price_cart(cart_from_state(state))
        return OrderSession(id=order.id, lines=list(cart), total=self.pricing.order_total(cart))

    def apply(self, session: OrderSession, cart: Iterable[CartLine], closed: bool = False) -> OrderSession:
        """
        Persist the cart produced by a turn.

        Args:
            session: The session the turn ran against.
            cart: The authoritative cart after the turn.
            closed: Whether the gatekeeper closed the order this turn.

        Returns:
            The session to report back. After a close it has no id, no lines,
            and carries the receipt.
        """
        cart = self.pricing.price_cart(cart)
        total = self.pricing.order_total(cart)
        updated = session.model_copy(update={"lines": list(cart), "total": total})
        if closed:
            receipt = self.close(updated)
            return OrderSession(state=SessionState.CLOSED, receipt=receipt)

        if updated.id is None and not cart:
            # Nothing ordered yet; nothing to store
            return updated

        try:
            if updated.id is None:
                order = Order(id=str(uuid.uuid4()), status=STATUS_PENDING)
                self.db.add(order)
                logger.info("Opened order %s", order.id)
            else:
                order = self._get_open_order(updated.id)
            self._write(order, cart, total)
            self.db.commit()
        except SQLAlchemyError as e:
            self._fail("save order %s" % (updated.id or "(new)"), e)

        return updated.model_copy(update={"id": order.id})

    def close(self, session: OrderSession) -> Receipt:
        """
        Send the order to the kitchen and return its receipt.

        The row moves to status "new". After this the session id is no longer
        handed back to the caller.
        """
        cart = self.pricing.price_cart(session.lines)
        total = self.pricing.order_total(cart)
        try:
            if session.id is None:
                order = Order(id=str(uuid.uuid4()))
                self.db.add(order)
            else:
                order = self._get_open_order(session.id)
            self._write(order, cart, total)
            order.status = STATUS_NEW
            self.db.commit()
        except SQLAlchemyError as e:
            self._fail("close order %s" % (session.id or "(new)"), e)

        logger.info("Order %s sent to the kitchen, total %s", order.id, total)
        return Receipt(lines=[format_line(line) for line in cart], total=total)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _get_open_order(self, order_id: str) -> Order:
        order = self.db.get(Order, order_id)
        if order is None or order.status != STATUS_PENDING:
            # Row vanished or was closed by a concurrent turn: start over
            logger.warning("Order %s is no longer open, writing a new one", order_id)
            order = Order(id=str(uuid.uuid4()), status=STATUS_PENDING)
            self.db.add(order)
        return order

    @staticmethod
    def _write(order: Order, cart: Cart, total: Decimal) -> None:
        order.cart_state = cart_to_state(cart)
        order.items = format_cart(cart)
        order.total_price = float(total)

    def _fail(self, action: str, error: SQLAlchemyError):
        self.db.rollback()
        logger.exception("Failed to %s", action)
        raise PersistenceFailure(f"Could not {action}") from error
