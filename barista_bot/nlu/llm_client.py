"""
LLM Turn Proposer.

Asks the model to turn one customer utterance into a TurnProposal using
instructor structured outputs over the OpenAI client. The model only extracts
intent: which items, which attributes, whether the customer is done or wants to
start over. It is told not to enforce menu rules; the order engine does that
deterministically afterwards.
"""

import json
import logging
from typing import Sequence

import instructor
from instructor.core import InstructorRetryException
from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from .. import config
from ..engine.catalog import MILK_SURCHARGES, MODIFIERS, SIZE_OUNCES, MenuCatalog, get_catalog
from ..engine.errors import NluUnavailable
from ..engine.formatting import format_line
from ..engine.schemas import CartLine, ConversationTurn, TurnProposal

logger = logging.getLogger(__name__)

_client = None


def get_instructor_client():
    """Get instructor-wrapped OpenAI client, created on first use."""
    global _client
    if _client is None:
        if not config.OPENAI_API_KEY:
            raise NluUnavailable("OPENAI_API_KEY not set")
        _client = instructor.from_openai(OpenAI(api_key=config.OPENAI_API_KEY))
    return _client


def build_menu_context(catalog: MenuCatalog | None = None) -> str:
    """Plain-text menu for the system prompt."""
    catalog = catalog or get_catalog()
    lines = []
    for item in catalog.items:
        if item.is_pastry:
            lines.append(f"- {item.name} (pastry, ${item.base_price():.2f})")
            continue
        prices = ", ".join(f"{size} ${item.prices[size]:.2f}" for size in item.sizes)
        temps = "/".join(item.temperatures)
        milk = item.milk.value if item.milk else "none"
        lines.append(f"- {item.name} ({item.category.value}; {prices}; {temps}; milk {milk})")
    milks = ", ".join(f"{name} +${price:.2f}" for name, price in MILK_SURCHARGES.items())
    addons = ", ".join(f"{m.label} +${m.surcharge:.2f}" for m in MODIFIERS.values())
    sizes = ", ".join(f"{size} {oz} oz" for size, oz in SIZE_OUNCES.items())
    return (
        "MENU:\n" + "\n".join(lines)
        + f"\nMILK: {milks}\nADD-ONS: {addons}\nSIZES: {sizes}"
    )


SYSTEM_PROMPT = """You are Sarah, the voice ordering assistant for {store}.
Extract what the customer wants from their latest message as structured cart updates.

{menu}

RULES:
- Only extract intent. Do not enforce menu rules or prices; copy the customer's words for
  size, temperature, milk and add-ons even if we do not offer them (e.g. "medium", "lukewarm").
- action=add with target=new for new items. action=set with target=implicit for short answers
  like "large", "iced", "oat milk". Use target=explicit with target_item when they name the item
  being changed. action=replace for "actually make that a mocha". action=remove to take an item off.
- Only set quantity when the customer says a number.
- Set closing_signal when the customer says they are done ("that's all", "no" to "anything else?").
- Set reset_signal when they want to start over or cancel the whole order.
- response: one short, friendly sentence. Ask for at most one missing detail.
"""


def propose_turn(
    message: str,
    cart: Sequence[CartLine],
    history: Sequence[ConversationTurn],
    model: str | None = None,
) -> TurnProposal:
    """
    Call the model for one turn.

    Args:
        message: The customer's utterance.
        cart: The current cart, shown to the model for reference.
        history: Recent conversation turns.
        model: Model name, defaults to OPENAI_MODEL.

    Raises:
        NluUnavailable: The API call failed or produced an unusable proposal.
    """
    client = get_instructor_client()
    messages = [{
        "role": "system",
        "content": SYSTEM_PROMPT.format(store=config.STORE_NAME, menu=build_menu_context()),
    }]
    for turn in list(history)[-config.HISTORY_MAX_TURNS:]:
        messages.append({"role": turn.role, "content": turn.text})
    cart_lines = [format_line(line) for line in cart]
    messages.append({
        "role": "user",
        "content": f"CURRENT CART: {json.dumps(cart_lines)}\nCUSTOMER: {message}",
    })

    try:
        proposal = client.chat.completions.create(
            model=model or config.OPENAI_MODEL,
            response_model=TurnProposal,
            messages=messages,
            temperature=0.0,
            max_retries=1,
        )
    except (OpenAIError, InstructorRetryException, ValidationError) as e:
        logger.error("LLM proposal failed: %s", type(e).__name__)
        raise NluUnavailable("Language understanding is unavailable") from e

    logger.debug("LLM proposed %d update(s)", len(proposal.updates))
    return proposal
