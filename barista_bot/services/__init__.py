"""
Services Package for Barista Bot
================================

Service modules that sit between the HTTP routes and the database. The order
engine itself is pure; everything that reads or writes orders lives here.

Available Services:
-------------------
- **session**: Session lifecycle (open, apply a turn's cart, close to the
  kitchen) over the orders table
- **order**: Kitchen queue listing and status updates

Usage:
------
    from barista_bot.services.session import SessionLifecycleManager
    from barista_bot.services.order import list_kitchen_orders, update_order_status
"""

from . import session
from . import order

__all__ = ["session", "order"]
