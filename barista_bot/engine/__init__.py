"""
Order Validation, Gatekeeper and Pricing Engine.

Everything downstream of the language step that turns a proposed cart update
into the authoritative cart:

- catalog: the fixed menu, synonyms, surcharges
- validator: per-line business rules and guardrail selection
- merge: applies proposed updates to the previous cart
- gatekeeper: decides whether an order may close
- pricing: authoritative prices and totals
- turn: the per-turn pipeline tying them together
"""

from .catalog import MenuCatalog, MenuItem, get_catalog
from .errors import (
    OrderEngineError,
    UnknownItem,
    UnattachableModifier,
    LineNotFound,
    IllegalModifierCombination,
    CartInvariantError,
    PersistenceFailure,
    NluUnavailable,
)
from .schemas import (
    CartLine,
    Correction,
    ReasonCode,
    ProposedUpdate,
    TurnProposal,
    ConversationTurn,
    CompletionDecision,
    MissingField,
    Receipt,
    TurnOutcome,
    TurnStatus,
    UpdateAction,
    TargetRef,
)
from .formatting import format_line, format_cart, parse_cart, cart_from_state, cart_to_state
from .validator import ModifierValidator, select_guardrail
from .merge import CartMergeResolver, MergeResult
from .gatekeeper import ClosingGatekeeper, OrderPhase
from .pricing import PricingEngine
from .message_builder import MessageBuilder
from .turn import OrderEngine

__all__ = [
    # Catalog
    "MenuCatalog",
    "MenuItem",
    "get_catalog",
    # Errors
    "OrderEngineError",
    "UnknownItem",
    "UnattachableModifier",
    "LineNotFound",
    "IllegalModifierCombination",
    "CartInvariantError",
    "PersistenceFailure",
    "NluUnavailable",
    # Types
    "CartLine",
    "Correction",
    "ReasonCode",
    "ProposedUpdate",
    "TurnProposal",
    "ConversationTurn",
    "CompletionDecision",
    "MissingField",
    "Receipt",
    "TurnOutcome",
    "TurnStatus",
    "UpdateAction",
    "TargetRef",
    # Formatting
    "format_line",
    "format_cart",
    "parse_cart",
    "cart_from_state",
    "cart_to_state",
    # Components
    "ModifierValidator",
    "select_guardrail",
    "CartMergeResolver",
    "MergeResult",
    "ClosingGatekeeper",
    "OrderPhase",
    "PricingEngine",
    "MessageBuilder",
    "OrderEngine",
]
