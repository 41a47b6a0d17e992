"""
Tests for the session lifecycle manager: open, update, close, and failures.
"""
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from barista_bot.engine import PersistenceFailure
from barista_bot.models import Order
from barista_bot.services.session import SessionLifecycleManager, SessionState


@pytest.fixture
def manager(db_session):
    return SessionLifecycleManager(db_session)


class TestOpen:
    """Starting and resuming sessions."""

    def test_no_id_starts_empty(self, manager):
        """Test that a conversation without an id starts with an empty cart."""
        session = manager.open(None)
        assert session.id is None
        assert session.cart == ()
        assert session.total == Decimal("0.00")

    def test_unknown_id_starts_fresh(self, manager):
        """Test that an id not in the database starts a new session."""
        assert manager.open("no-such-order").id is None

    def test_legacy_row_read_from_display_string(self, manager, db_session):
        """Test that a row without cart_state is parsed from its items string."""
        db_session.add(Order(id="legacy-1", status="pending", items="1x Mocha (Large) (Iced) (Oat milk)"))
        db_session.commit()

        session = manager.open("legacy-1")
        assert session.id == "legacy-1"
        (line,) = session.lines
        assert (line.item_name, line.size, line.temperature, line.milk) == ("Mocha", "large", "iced", "oat")
        assert session.total == Decimal("6.00")


class TestApply:
    """Writing the cart after a turn."""

    def test_empty_cart_is_not_stored(self, manager, db_session):
        """Test that nothing is written until there is a line."""
        session = manager.apply(manager.open(None), ())
        assert session.id is None
        assert db_session.query(Order).count() == 0

    def test_first_line_opens_an_order(self, manager, db_session, make_line):
        """Test that the first non-empty cart inserts a pending order."""
        session = manager.apply(manager.open(None), (make_line("Latte", size="small"),))
        assert session.id is not None
        assert session.total == Decimal("4.50")
        assert session.lines[0].line_price == Decimal("4.50")

        order = db_session.get(Order, session.id)
        assert order.status == "pending"
        assert order.items == "1x Latte (Small)"
        assert order.cart_state[0]["item_name"] == "Latte"
        assert order.total_price == 4.5

    def test_resume_and_update(self, manager, db_session, make_line):
        """Test that a resumed session keeps its id and cart."""
        first = manager.apply(manager.open(None), (make_line("Latte", size="small"),))
        resumed = manager.open(first.id)
        assert resumed.cart == first.cart

        cart = resumed.cart + (make_line("Chocolate Chip Cookie"),)
        second = manager.apply(resumed, cart)
        assert second.id == first.id
        assert db_session.get(Order, first.id).items == "1x Latte (Small), 1x Chocolate Chip Cookie"
        assert second.total == Decimal("7.00")

    def test_clearing_keeps_the_order_open(self, manager, db_session, make_line):
        """Test that an emptied cart keeps its id and row."""
        first = manager.apply(manager.open(None), (make_line("Banana Bread"),))
        cleared = manager.apply(manager.open(first.id), ())
        assert cleared.id == first.id
        order = db_session.get(Order, first.id)
        assert order.status == "pending"
        assert order.items == ""


class TestClose:
    """Sending orders to the kitchen."""

    def test_close_moves_order_to_kitchen(self, manager, db_session, make_line):
        """Test that closing returns a receipt and marks the row new."""
        cart = (make_line("Latte", size="small", temperature="hot", milk="whole"),)
        opened = manager.apply(manager.open(None), cart)

        closed = manager.apply(manager.open(opened.id), cart, closed=True)
        assert closed.state == SessionState.CLOSED
        assert closed.is_closed
        assert closed.id is None
        assert closed.lines == []
        assert closed.receipt.text == "1x Latte (Small) (Hot) (Whole milk)\nTotal: $4.50"
        assert db_session.get(Order, opened.id).status == "new"

    def test_closed_order_is_never_reopened(self, manager, make_line):
        """Test that the id of a closed order starts a new session."""
        opened = manager.apply(manager.open(None), (make_line("Banana Bread"),))
        manager.apply(manager.open(opened.id), (make_line("Banana Bread"),), closed=True)
        assert manager.open(opened.id).id is None

    def test_close_on_first_turn(self, manager, db_session, make_line):
        """Test that an order closed in its first turn is still stored."""
        closed = manager.apply(manager.open(None), (make_line("Chocolate Chip Cookie", quantity=2),), closed=True)
        assert closed.receipt.total == Decimal("5.00")
        (order,) = db_session.query(Order).all()
        assert order.status == "new"
        assert order.items == "2x Chocolate Chip Cookie"


class TestPersistenceFailure:
    """Database errors surface as PersistenceFailure."""

    def test_failed_write(self, manager, db_session, monkeypatch, make_line):
        """Test that a failed commit raises and stores nothing."""
        def boom():
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(db_session, "commit", boom)
        with pytest.raises(PersistenceFailure):
            manager.apply(manager.open(None), (make_line("Latte"),))
        monkeypatch.undo()
        assert db_session.query(Order).count() == 0

    def test_failed_close_keeps_order_open(self, manager, db_session, monkeypatch, make_line):
        """Test that a failed close leaves the stored order pending."""
        cart = (make_line("Banana Bread"),)
        opened = manager.apply(manager.open(None), cart)

        def boom():
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(db_session, "commit", boom)
        with pytest.raises(PersistenceFailure):
            manager.apply(manager.open(opened.id), cart, closed=True)
        monkeypatch.undo()
        assert db_session.get(Order, opened.id).status == "pending"
