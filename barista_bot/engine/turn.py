"""
Order Engine turn pipeline.

One call per customer utterance:

    proposal -> reset? -> pastry upsell answer? -> merge -> validate -> price
             -> closing re-check -> gatekeeper -> response

The engine never trusts the proposal blindly. Closing and reset signals are
re-checked against what the customer actually said, quantities are checked by
the merge resolver, and totals are always recomputed. Engine errors caused by
the customer's words never escape: each maps to a reply that leaves the cart
as it was.
"""

import logging
import re
from decimal import Decimal
from typing import Iterable, Sequence

from .. import config
from .catalog import MenuCatalog, get_catalog
from .errors import CartInvariantError, UnattachableModifier, UnknownItem
from .formatting import format_line
from .gatekeeper import ClosingGatekeeper
from .merge import CartMergeResolver
from .message_builder import MessageBuilder
from .patterns import (
    EVERYTHING_QUESTION_PATTERN,
    PASTRY_OFFER_PATTERN,
    is_affirmative,
    is_done_phrase,
    is_reset_request,
)
from .pricing import PricingEngine
from .schemas import (
    CartLine,
    ConversationTurn,
    Receipt,
    TurnOutcome,
    TurnProposal,
    TurnStatus,
)
from .validator import ModifierValidator, select_guardrail

logger = logging.getLogger(__name__)

_CLAUSE_SPLIT = re.compile(r"[,.;!]\s*|\s+and\s+(?=that)", re.IGNORECASE)


def last_assistant_text(history: Sequence[ConversationTurn]) -> str | None:
    for turn in reversed(history):
        if turn.role == "assistant":
            return turn.text
    return None


def pastry_offered(history: Sequence[ConversationTurn]) -> bool:
    return any(turn.role == "assistant" and PASTRY_OFFER_PATTERN.search(turn.text) for turn in history)


class OrderEngine:
    """
    Runs a proposed turn through merge, validation, pricing and the gatekeeper.

    Stateless: the caller passes in the previous cart and gets back the next
    one. Persisting it is the Session Lifecycle Manager's job.
    """

    def __init__(self, catalog: MenuCatalog | None = None):
        self.catalog = catalog or get_catalog()
        self.merger = CartMergeResolver(self.catalog)
        self.validator = ModifierValidator(self.catalog)
        self.gatekeeper = ClosingGatekeeper(self.catalog)
        self.pricing = PricingEngine(self.catalog)
        self.messages = MessageBuilder(self.catalog)

    def process_turn(
        self,
        cart: Iterable[CartLine],
        proposal: TurnProposal,
        utterance: str | None = None,
        history: Sequence[ConversationTurn] | None = None,
    ) -> TurnOutcome:
        """
        Process one turn.

        Args:
            cart: The persisted cart before this turn.
            proposal: Cart updates and signals from the language step.
            utterance: What the customer said. None trusts the proposal's
                quantities and signals as-is.
            history: Prior turns; only the most recent ones are consulted.

        Returns:
            TurnOutcome with the authoritative cart, total, reply and decision.
        """
        cart = tuple(cart)
        history = list(history or [])[-config.HISTORY_MAX_TURNS:]
        last_assistant = last_assistant_text(history)

        if proposal.reset_signal or is_reset_request(utterance):
            logger.info("Order reset (%d line(s) cleared)", len(cart))
            return TurnOutcome(
                cart=(),
                total=Decimal("0.00"),
                message=self.messages.reset(),
                status=TurnStatus.RESET,
                mutated=bool(cart),
            )

        if not proposal.updates and self._accepts_pastry_offer(utterance, last_assistant):
            # A vague yes never adds an item; list the pastries and wait
            priced = self.pricing.price_cart(cart)
            return TurnOutcome(
                cart=priced,
                total=self.pricing.order_total(priced),
                message=self.messages.pastry_options(),
                status=TurnStatus.UPSELL_OPTIONS,
                decision=self.gatekeeper.decide(priced, closing=False),
            )

        merged = self.merger.merge(cart, proposal.updates, utterance, last_assistant)
        try:
            validated, corrections = self.validator.validate_cart(merged.cart)
            guardrail_candidates = list(corrections)
            for line in merged.provisional:
                guardrail_candidates.extend(self.validator.validate_line(line)[1])
        except CartInvariantError:
            logger.exception("Proposal left the cart inconsistent; keeping the previous cart")
            priced = self.pricing.price_cart(cart)
            return TurnOutcome(
                cart=priced,
                total=self.pricing.order_total(priced),
                message=self.messages.not_applied(),
                status=TurnStatus.NOT_APPLIED,
                decision=self.gatekeeper.decide(priced, closing=False),
            )

        priced = self.pricing.price_cart(validated)
        total = self.pricing.order_total(priced)
        self.pricing.check_proposed_total(proposal.total_price, total)

        closing = self.closing_requested(proposal, utterance, last_assistant)
        decision = self.gatekeeper.decide(priced, closing)
        chosen = select_guardrail(guardrail_candidates)
        guardrail = self.messages.guardrail(chosen) if chosen else None
        mutated = merged.mutated or validated != merged.cart

        outcome = TurnOutcome(
            cart=priced,
            total=total,
            message="",
            status=TurnStatus.NO_CHANGE,
            decision=decision,
            corrections=corrections,
            guardrail=guardrail,
            mutated=mutated,
        )

        if closing:
            self._close(outcome, guardrail)
        else:
            self._respond(outcome, merged, proposal, history, guardrail)
        return outcome

    # -------------------------------------------------------------------------
    # Closing
    # -------------------------------------------------------------------------

    def closing_requested(self, proposal: TurnProposal, utterance: str | None, last_assistant: str | None) -> bool:
        """
        Re-check a closing request against the utterance.

        A done phrase ("that's all", "no thanks", "place my order") closes on
        its own, also as the last clause ("a cookie, that's it"). A yes only
        closes when it answers "is that everything?". With no utterance the
        proposal's flag is trusted.
        """
        if utterance is None:
            return proposal.closing_signal
        if is_done_phrase(utterance):
            return True
        clauses = [c for c in _CLAUSE_SPLIT.split(utterance) if c and c.strip()]
        if len(clauses) > 1 and is_done_phrase(clauses[-1]):
            return True
        if is_affirmative(utterance) and last_assistant and EVERYTHING_QUESTION_PATTERN.search(last_assistant):
            return True
        if proposal.closing_signal:
            logger.info("Closing signal not backed by the utterance; order stays open")
        return False

    def _close(self, outcome: TurnOutcome, guardrail: str | None) -> None:
        cart = outcome.cart
        if not cart:
            outcome.status = TurnStatus.NOTHING_TO_CLOSE
            outcome.message = self.messages.nothing_to_close()
            return

        if not outcome.decision.complete:
            line = cart[outcome.decision.missing[0].line_index]
            fields = [m.field for m in outcome.decision.missing]
            outcome.status = TurnStatus.CLOSE_VETOED
            outcome.message = self._join(guardrail, self.messages.veto(line, fields))
            return

        outcome.receipt = Receipt(lines=[format_line(line) for line in cart], total=outcome.total)
        outcome.status = TurnStatus.CLOSED
        outcome.message = self._join(guardrail, self.messages.closed(outcome.total))
        logger.info("Order closed: %d line(s), total %s", len(cart), outcome.total)

    # -------------------------------------------------------------------------
    # Collecting
    # -------------------------------------------------------------------------

    def _respond(self, outcome, merged, proposal: TurnProposal, history, guardrail: str | None) -> None:
        cart = outcome.cart
        parts = [guardrail] if guardrail else []
        acknowledgement = self.messages.acknowledge(merged)
        if acknowledgement:
            parts.append(acknowledgement)

        asked_question = False
        for error in merged.errors:
            parts.append(self.messages.error(error, cart))
            if isinstance(error, UnknownItem) and error.ambiguous:
                asked_question = True

        if not merged.errors and not outcome.mutated and not guardrail:
            # Nothing happened to the cart: questions about the menu, greetings
            draft = proposal.response.strip() if proposal.response else ""
            if draft:
                parts.append(draft)
            if not cart:
                outcome.message = self._join(*parts) or self.messages.fallback()
                outcome.status = TurnStatus.NO_CHANGE
                return

        if not asked_question:
            prompt = self.messages.next_prompt(cart, outcome.decision.missing, pastry_offered(history))
            if prompt:
                parts.append(prompt)

        outcome.message = self._join(*parts) or self.messages.fallback()
        outcome.status = self._status(outcome, merged)

    def _status(self, outcome: TurnOutcome, merged) -> TurnStatus:
        if outcome.mutated:
            return TurnStatus.UPDATED
        if any(isinstance(e, UnknownItem) for e in merged.errors):
            return TurnStatus.UNKNOWN_ITEM
        if any(isinstance(e, UnattachableModifier) for e in merged.errors):
            return TurnStatus.UNATTACHABLE
        return TurnStatus.NO_CHANGE

    @staticmethod
    def _accepts_pastry_offer(utterance: str | None, last_assistant: str | None) -> bool:
        return bool(last_assistant) and is_affirmative(utterance) and bool(PASTRY_OFFER_PATTERN.search(last_assistant))

    @staticmethod
    def _join(*parts: str | None) -> str:
        return " ".join(p.strip() for p in parts if p and p.strip())

