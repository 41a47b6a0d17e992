"""
Data types shared by the order engine.

Cart lines are frozen pydantic models and a cart is a tuple of them: every
engine step takes a snapshot and returns a new one. The proposal types
(ProposedUpdate, TurnProposal) double as the structured-output schema for the
LLM adapter, so their field descriptions are written for the model.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Size = Literal["small", "large"]
Temperature = Literal["hot", "iced"]
Milk = Literal["whole", "skim", "oat", "almond"]
LineField = Literal["size", "temperature", "milk"]


class CartLine(BaseModel):
    """One line of the order. unit_price and line_price are set by pricing."""

    model_config = ConfigDict(frozen=True)

    item_name: str
    quantity: int = Field(default=1, ge=1)
    size: Size | None = None
    temperature: Temperature | None = None
    milk: Milk | None = None
    # canonical modifier key -> count; unvalidated lines may hold raw words
    modifiers: dict[str, int] = Field(default_factory=dict)
    unit_price: Decimal = Decimal("0.00")
    line_price: Decimal = Decimal("0.00")

    def with_changes(self, **changes) -> "CartLine":
        """Return a copy with the given fields replaced."""
        return self.model_copy(update=changes)


Cart = tuple[CartLine, ...]


class ReasonCode(str, Enum):
    """Why the validator changed a line. Declared in guardrail precedence order."""
    PASTRY_MODIFIERS_STRIPPED = "PastryModifiersStripped"
    CANNOT_WARM_PASTRY = "CannotWarmPastry"
    ICED_ONLY_ITEM = "IcedOnlyItem"
    MODIFIER_CAPPED = "ModifierCapped"
    UNSUPPORTED_MODIFIER = "UnsupportedModifier"


REASON_PRECEDENCE = tuple(ReasonCode)


class Correction(BaseModel):
    """A single change the validator made to a line, and why."""

    model_config = ConfigDict(frozen=True)

    line_index: int
    item_name: str
    field: str
    from_value: str | None = None
    to_value: str | None = None
    reason: ReasonCode


# =============================================================================
# Proposal (NLU output)
# =============================================================================

class UpdateAction(str, Enum):
    ADD = "add"
    SET = "set"
    REMOVE = "remove"
    REPLACE = "replace"


class TargetRef(str, Enum):
    NEW = "new"  # a line that does not exist yet
    IMPLICIT = "implicit"  # "make it large": the engine picks the line
    EXPLICIT = "explicit"  # names the line through target_item


class ProposedUpdate(BaseModel):
    """One cart change extracted from the customer's words."""

    action: UpdateAction = Field(
        default=UpdateAction.ADD,
        description="add a new item, set attributes on an existing item, remove an item, "
                    "or replace an item with a different one",
    )
    target: TargetRef = Field(
        default=TargetRef.NEW,
        description="new for a new item, implicit when the customer does not say which item, "
                    "explicit when they name it in target_item",
    )
    target_item: str | None = Field(default=None, description="item being changed or removed")
    item: str | None = Field(default=None, description="item as the customer said it")
    size: str | None = Field(default=None, description="size word exactly as said")
    temperature: str | None = Field(default=None, description="temperature word exactly as said")
    milk: str | None = Field(default=None, description="milk choice exactly as said")
    modifiers: list[str] = Field(
        default_factory=list,
        description="add-ons and customizations as said, e.g. '2 pumps caramel', 'less ice'",
    )
    quantity: int | None = Field(default=None, description="how many, only if the customer said a number")


class TurnProposal(BaseModel):
    """Everything the language step extracted from one customer utterance."""

    updates: list[ProposedUpdate] = Field(default_factory=list)
    closing_signal: bool = Field(
        default=False, description="true when the customer says they are done ordering",
    )
    reset_signal: bool = Field(
        default=False, description="true when the customer wants to start over",
    )
    response: str = Field(default="", description="short draft reply to the customer")
    total_price: float | None = Field(default=None, description="your estimate of the order total")


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    text: str


# =============================================================================
# Decisions and receipts
# =============================================================================

class MissingField(BaseModel):
    line_index: int
    field: LineField


class CompletionDecision(BaseModel):
    """Whether the order closed this turn, and what is still needed if not."""
    complete: bool = False
    missing: list[MissingField] = Field(default_factory=list)


class Receipt(BaseModel):
    lines: list[str]
    total: Decimal

    @property
    def text(self) -> str:
        return "\n".join(self.lines) + f"\nTotal: ${self.total:.2f}"


class TurnStatus(str, Enum):
    """What kind of turn the engine just processed."""
    UPDATED = "updated"
    NO_CHANGE = "no_change"
    RESET = "reset"
    CLOSED = "closed"
    CLOSE_VETOED = "close_vetoed"
    NOTHING_TO_CLOSE = "nothing_to_close"
    UNKNOWN_ITEM = "unknown_item"
    UNATTACHABLE = "unattachable"
    UPSELL_OPTIONS = "upsell_options"
    NOT_APPLIED = "not_applied"


@dataclass
class TurnOutcome:
    """Result of running one turn through the engine."""
    cart: Cart
    total: Decimal
    message: str
    status: TurnStatus
    decision: CompletionDecision = field(default_factory=CompletionDecision)
    corrections: list[Correction] = field(default_factory=list)
    guardrail: str | None = None
    receipt: Receipt | None = None
    mutated: bool = False

    @property
    def closed(self) -> bool:
        return self.status == TurnStatus.CLOSED

    @property
    def reset(self) -> bool:
        return self.status == TurnStatus.RESET
