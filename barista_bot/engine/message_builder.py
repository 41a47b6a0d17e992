"""
Message Builder for the Order Engine.

Every sentence the engine says is built here from fixed phrases: guardrails,
follow-up questions, disambiguation prompts, closing and reset replies. The
draft reply from the language step is only used on turns that change nothing.
"""

from decimal import Decimal
from typing import Sequence

from .. import config
from .catalog import MenuCatalog, ModifierKind, SIZE_OUNCES, get_catalog
from .errors import LineNotFound, OrderEngineError, UnattachableModifier, UnknownItem
from .merge import MergeResult
from .schemas import CartLine, Correction, ReasonCode


def join_words(words: Sequence[str], conjunction: str = "or") -> str:
    """["a", "b", "c"] -> "a, b, or c"."""
    words = list(words)
    if not words:
        return ""
    if len(words) == 1:
        return words[0]
    if len(words) == 2:
        return f"{words[0]} {conjunction} {words[1]}"
    return f"{', '.join(words[:-1])}, {conjunction} {words[-1]}"


def with_article(name: str) -> str:
    return f"an {name}" if name[:1].lower() in "aeiou" else f"a {name}"


def quantity_phrase(quantity: int, name: str) -> str:
    if quantity == 1:
        return with_article(name)
    plural = name if name.endswith("s") else f"{name}s"
    return f"{quantity} {plural}"


class MessageBuilder:
    """
    Builds the assistant's replies.

    Provides guardrail messages for validator corrections, the next question
    for an incomplete cart, and the fixed replies for closing, resetting and
    errors.
    """

    FIELD_NAMES = {"size": "size", "temperature": "temperature", "milk": "milk"}

    def __init__(self, catalog: MenuCatalog | None = None):
        self.catalog = catalog or get_catalog()

    # -------------------------------------------------------------------------
    # Conversation control
    # -------------------------------------------------------------------------

    def greeting(self) -> str:
        return f"Welcome to {config.STORE_NAME}! What can I get for you? We have coffee, tea, and pastries."

    def reset(self) -> str:
        return "I've cleared the order. What can I get for you?"

    def fallback(self) -> str:
        return "What can I get for you?"

    def not_applied(self) -> str:
        return "Sorry, I couldn't make that change, so your order is the same as before."

    def nothing_to_close(self) -> str:
        return "You don't have anything in your order yet. What would you like?"

    def closed(self, total: Decimal) -> str:
        return f"Great, your order is in and on its way to the kitchen! Your total is ${total:.2f}. Please pay at the counter."

    def size_info(self) -> str:
        return f"Small is {SIZE_OUNCES['small']} ounces and large is {SIZE_OUNCES['large']} ounces."

    def pastry_options(self) -> str:
        return f"We have {join_words(self.catalog.pastry_names())}. Which would you like?"

    # -------------------------------------------------------------------------
    # Questions
    # -------------------------------------------------------------------------

    def question_for(self, line: CartLine, field: str) -> str:
        """The question that fills one missing field of a line."""
        name = line.item_name
        if field == "size":
            return f"What size would you like for the {name}, small or large?"
        if field == "temperature":
            return f"Would you like the {name} hot or iced?"
        if field == "milk":
            return f"What kind of milk for the {name}: whole, skim, oat, or almond?"
        return f"Anything else for the {name}?"

    def veto(self, line: CartLine, missing: Sequence[str]) -> str:
        if list(missing) == ["milk"]:
            needed = "a milk choice"
        else:
            needed = "a " + join_words([self.FIELD_NAMES[f] for f in missing], "and")
        return f"I still need {needed} for the {line.item_name}. {self.question_for(line, missing[0])}"

    def has_drink(self, cart: Sequence[CartLine]) -> bool:
        for line in cart:
            item = self.catalog.lookup(line.item_name)
            if item is not None and item.is_drink:
                return True
        return False

    def next_prompt(self, cart: Sequence[CartLine], missing: list, pastry_offered: bool) -> str | None:
        """
        What to ask next: the first missing field, a pastry offer, or
        "Anything else?".
        """
        if not cart:
            return None
        if missing:
            return self.question_for(cart[missing[0].line_index], missing[0].field)
        items = [self.catalog.lookup(line.item_name) for line in cart]
        has_pastry = any(item is not None and item.is_pastry for item in items)
        if self.has_drink(cart) and not has_pastry and not pastry_offered:
            return "Would you like to add a pastry?"
        return "Anything else?"

    def disambiguation(self, error: UnknownItem) -> str:
        options = error.candidates
        if len(options) == 2:
            return f"Would you like {with_article(options[0])} or {with_article(options[1])}?"
        return f"Which {error.name} would you like? We have {join_words(options)}."

    # -------------------------------------------------------------------------
    # Acknowledgements and errors
    # -------------------------------------------------------------------------

    def acknowledge(self, merged: MergeResult) -> str | None:
        """Short confirmation of what changed this turn."""
        sentences = []
        if merged.added:
            added = join_words([quantity_phrase(line.quantity, line.item_name) for line in merged.added], "and")
            sentences.append(f"Got it, {added}.")
        for old, new in merged.replaced:
            sentences.append(f"I switched the {old.item_name} to {with_article(new.item_name)}.")
        for line in merged.removed:
            sentences.append(f"I removed the {line.item_name}.")
        if merged.updated and not sentences:
            sentences.append("Got it.")
        return " ".join(sentences) or None

    def error(self, error: OrderEngineError, cart: Sequence[CartLine]) -> str:
        if isinstance(error, UnknownItem):
            if error.ambiguous:
                return self.disambiguation(error)
            return f"Sorry, we don't have {error.name or 'that'}. We have coffee, tea, and pastries."
        if isinstance(error, UnattachableModifier):
            if not self.has_drink(cart):
                return "I don't have a drink in progress yet. Tell me what you'd like to order."
            return "Which drink should I change? You can say something like \"make the latte large\"."
        if isinstance(error, LineNotFound):
            if not cart:
                return "There's nothing in your order yet. What can I get for you?"
            return f"I don't see {with_article(error.item_name)} in your order."
        return self.fallback()

    # -------------------------------------------------------------------------
    # Guardrails
    # -------------------------------------------------------------------------

    def guardrail(self, correction: Correction) -> str:
        """The customer-facing explanation for a validator correction."""
        item = correction.item_name
        reason = correction.reason

        if reason == ReasonCode.PASTRY_MODIFIERS_STRIPPED:
            return f"Pastries are served as-is, so I removed the drink modifiers from the {item}."
        if reason == ReasonCode.CANNOT_WARM_PASTRY:
            return "Sorry, we cannot warm up pastries."
        if reason == ReasonCode.ICED_ONLY_ITEM:
            return f"The {item} is iced only, so I made it iced."
        if reason == ReasonCode.MODIFIER_CAPPED:
            if correction.field == "syrup":
                return f"We can add up to {correction.to_value} syrup pumps per drink."
            return f"We can add up to {correction.to_value} extra shots per drink."
        return self._unsupported(correction)

    def _unsupported(self, correction: Correction) -> str:
        item = correction.item_name
        raw = correction.from_value or ""
        if correction.field == "size":
            return f"We don't have a {raw} size, only small or large."
        if correction.field == "temperature":
            return "We only serve drinks hot or iced."
        if correction.field == "milk":
            menu_item = self.catalog.lookup(item)
            if menu_item is not None and menu_item.forbids_milk:
                return f"The {item} doesn't come with milk."
            return "We have whole, skim, oat, or almond milk."

        mod = self.catalog.modifier(raw)
        if mod is not None:
            if mod.kind == ModifierKind.ICE:
                return f"Your {item} is hot, so ice levels don't apply."
            return f"We can't add {with_article(mod.label.lower())} to the {item}."
        if "syrup" in raw:
            return f"Sorry, we don't have {raw}. We have caramel or hazelnut syrup."
        return f"Sorry, we can't add {raw} to the {item}."
