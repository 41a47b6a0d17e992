"""
Routes Package for Barista Bot
==============================

API route definitions, one APIRouter per module.

- chat.py: POST /chat, the ordering conversation
- orders.py: Kitchen queue listing and status updates
- owner.py: Daily stats for the store owner

Router Registration:
--------------------
Routers are registered in main.py under two prefixes:
1. /api/v1/* - Versioned API
2. /* - Root paths

Error Handling:
---------------
- 400: Invalid kitchen status
- 404: Unknown order id
- 422: Request body failed validation
- 429: Too many requests (rate limited)
- 503: Language understanding or database unavailable
"""

from .chat import chat_router, limiter
from .orders import orders_router
from .owner import owner_router

__all__ = ["chat_router", "orders_router", "owner_router", "limiter"]
