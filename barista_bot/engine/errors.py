"""
Exceptions raised by the order engine.

User input never produces a fatal error: every exception below that can be
triggered by an utterance is caught by the turn pipeline and mapped to a
cart-preserving response. PersistenceFailure and NluUnavailable escape to the
HTTP layer, which answers 503 and leaves the stored cart untouched.
"""

from typing import Iterable, List, Optional


class OrderEngineError(Exception):
    """Base class for every error raised by the order engine."""


class UnknownItem(OrderEngineError):
    """Raised when a proposed item is not on the menu or names several items."""

    def __init__(self, name: str, candidates: Optional[Iterable[str]] = None):
        self.name = name
        self.candidates: List[str] = list(candidates or [])
        if self.candidates:
            message = f"'{name}' is ambiguous: {', '.join(self.candidates)}"
        else:
            message = f"'{name}' is not on the menu"
        super().__init__(message)

    @property
    def ambiguous(self) -> bool:
        return bool(self.candidates)


class UnattachableModifier(OrderEngineError):
    """Raised when an attribute has no cart line it can attach to."""

    def __init__(self, attributes: Iterable[str]):
        self.attributes = [a for a in attributes if a]
        super().__init__(f"No line can take: {', '.join(self.attributes) or 'update'}")


class LineNotFound(OrderEngineError):
    """Raised when a remove or replace names an item that is not in the cart."""

    def __init__(self, item_name: str):
        self.item_name = item_name
        super().__init__(f"No {item_name} in the cart")


class IllegalModifierCombination(OrderEngineError):
    """
    An attribute combination the menu does not allow.

    The validator corrects these in place and records a Correction instead of
    raising; the class exists so the condition has a name in logs.
    """


class CartInvariantError(OrderEngineError):
    """Internal consistency failure, e.g. a temperature leaking into modifiers."""


class PersistenceFailure(OrderEngineError):
    """Raised when the order store could not be read or written."""


class NluUnavailable(OrderEngineError):
    """Raised when the language understanding backend fails or returns junk."""
