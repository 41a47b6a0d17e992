"""
Chat Routes for Barista Bot
===========================

The customer-facing ordering endpoint.

Endpoints:
----------
- POST /chat: Send a message, receive the reply and the authoritative cart

Turn Flow:
----------
1. Open the session named by orderId (or a fresh one)
2. The proposer (LLM or rules) turns the message into a TurnProposal
3. The order engine merges, validates, prices and gates the close
4. The session manager persists the cart, or sends the order to the kitchen

The proposer never writes the cart. Whatever it proposes, the cart returned
here is the one the engine produced.

Rate Limiting:
--------------
Limited per client address (default: 30/minute) to bound LLM usage.

Errors:
-------
- 422: Empty or oversized message
- 429: Rate limited
- 503: Language understanding or the database is unavailable; the previous
  cart is untouched and the client may retry the same message
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from ..config import RATE_LIMIT_ENABLED, get_rate_limit_chat
from ..db import get_db
from ..engine import OrderEngine, format_cart, format_line
from ..engine.errors import NluUnavailable, PersistenceFailure
from ..nlu import Proposer, get_proposer
from ..schemas.chat import ChatRequest, ChatResponse, MissingFieldOut, ReceiptOut
from ..services.session import SessionLifecycleManager


logger = logging.getLogger(__name__)

# Router definition
chat_router = APIRouter(prefix="/chat", tags=["Chat"])

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

_engine = OrderEngine()


@chat_router.post("", response_model=ChatResponse)
@limiter.limit(get_rate_limit_chat)
def chat(
    request: Request,
    req: ChatRequest,
    db: Session = Depends(get_db),
    proposer: Proposer = Depends(get_proposer),
) -> ChatResponse:
    """Run one conversation turn against the customer's open order."""
    lifecycle = SessionLifecycleManager(db)
    try:
        session = lifecycle.open(req.order_id)
        proposal = proposer(req.message, session.cart, req.history)
        outcome = _engine.process_turn(session.cart, proposal, utterance=req.message, history=req.history)
        saved = lifecycle.apply(session, outcome.cart, closed=outcome.closed)
    except NluUnavailable as e:
        logger.warning("Chat turn failed: %s", e)
        raise HTTPException(
            status_code=503,
            detail="Sorry, I'm having trouble understanding right now. Please try again.",
        )
    except PersistenceFailure as e:
        logger.warning("Chat turn failed: %s", e)
        raise HTTPException(
            status_code=503,
            detail="Sorry, we couldn't save your order. Please try again.",
        )

    logger.info(
        "Turn on order %s: %s, %d line(s), total %s",
        saved.id or "(none)", outcome.status.value, len(saved.lines), saved.total,
    )

    if saved.is_closed:
        receipt = saved.receipt
        return ChatResponse(
            text=outcome.message,
            order_complete=True,
            guardrail=outcome.guardrail,
            receipt=ReceiptOut(lines=receipt.lines, total=receipt.total, text=receipt.text),
        )

    return ChatResponse(
        text=outcome.message,
        order_id=saved.id,
        cart=format_cart(saved.cart),
        cart_total=saved.total,
        lines=[format_line(line) for line in saved.cart],
        missing=[
            MissingFieldOut(line_index=m.line_index, field=m.field)
            for m in outcome.decision.missing
        ],
        guardrail=outcome.guardrail,
    )
