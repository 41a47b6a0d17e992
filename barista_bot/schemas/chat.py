"""
Chat Schemas for Barista Bot
============================

Request and response bodies for POST /chat, the one customer-facing endpoint.

Conversation State:
-------------------
The server keeps the cart; the client keeps the conversation. Each request
carries the orderId returned by the previous response (absent on the first
turn) and the recent history, which lets short replies like "plain" or "yes"
be read against the last question.

When an order closes the response carries the receipt and no orderId; the
next message starts a new order.

Field Naming:
-------------
Responses are serialized in camelCase (orderId, cartTotal, orderComplete).
Requests accept both camelCase and snake_case.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..config import MAX_MESSAGE_LENGTH
from ..engine.schemas import ConversationTurn


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(CamelModel):
    """
    Request body for POST /chat.

    Attributes:
        message: Customer's utterance (1 to MAX_MESSAGE_LENGTH characters)
        order_id: Open order from the previous response, if any
        history: Recent turns, oldest first
    """
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    order_id: Optional[str] = None
    history: List[ConversationTurn] = Field(default_factory=list)


class MissingFieldOut(CamelModel):
    line_index: int
    field: str


class ReceiptOut(CamelModel):
    lines: List[str]
    total: Decimal
    text: str


class ChatResponse(CamelModel):
    """
    Response from POST /chat.

    Attributes:
        text: Reply to show or speak to the customer
        order_id: Open order to send with the next message; None once closed
        order_complete: True when this turn sent the order to the kitchen
        cart: Display string of the cart ("" once closed)
        cart_total: Cart total (0 once closed)
        lines: Cart lines in display form
        missing: Fields the first incomplete line still needs
        guardrail: Explanation of a correction the engine made, if any
        receipt: Present only when the order closed this turn
    """
    text: str
    order_id: Optional[str] = None
    order_complete: bool = False
    cart: str = ""
    cart_total: Decimal = Decimal("0.00")
    lines: List[str] = Field(default_factory=list)
    missing: List[MissingFieldOut] = Field(default_factory=list)
    guardrail: Optional[str] = None
    receipt: Optional[ReceiptOut] = None
