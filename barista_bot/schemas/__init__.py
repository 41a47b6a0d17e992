"""
Schemas Package for Barista Bot
===============================

Pydantic models for API request validation and response serialization. The
engine's own types (CartLine, TurnProposal, ...) live in engine.schemas; these
are the HTTP shapes built from them.

Schema Organization:
--------------------
- **chat.py**: POST /chat request and response
- **orders.py**: Kitchen queue listing, status updates and owner stats

Naming Conventions:
-------------------
- *Out: Response models (e.g., OrderOut)
- *Request / *Response: Chat bodies
- StatusUpdate: PATCH body

Usage:
------
    from barista_bot.schemas import ChatRequest, ChatResponse, OrderOut
"""

# Chat schemas
from .chat import (
    ChatRequest,
    ChatResponse,
    MissingFieldOut,
    ReceiptOut,
)

# Order schemas
from .orders import (
    ItemCount,
    OrderOut,
    OwnerStats,
    StatusUpdate,
)

__all__ = [
    # Chat
    "ChatRequest",
    "ChatResponse",
    "MissingFieldOut",
    "ReceiptOut",
    # Orders
    "ItemCount",
    "OrderOut",
    "OwnerStats",
    "StatusUpdate",
]
