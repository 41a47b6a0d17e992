"""
Proposer selection.

A proposer is any callable (message, cart, history) -> TurnProposal. The HTTP
layer depends on get_proposer(), so tests can override it with a fake.
"""

import logging
from typing import Callable, Sequence

from .. import config
from ..engine.schemas import CartLine, ConversationTurn, TurnProposal
from . import llm_client
from .rules import RuleBasedProposer

logger = logging.getLogger(__name__)

Proposer = Callable[[str, Sequence[CartLine], Sequence[ConversationTurn]], TurnProposal]

_rules = RuleBasedProposer()


def llm_proposer(message: str, cart: Sequence[CartLine], history: Sequence[ConversationTurn]) -> TurnProposal:
    return llm_client.propose_turn(message, cart, history)


def get_proposer() -> Proposer:
    """Proposer for the configured NLU_BACKEND ("llm" or "rules")."""
    if config.NLU_BACKEND == "llm":
        return llm_proposer
    if config.NLU_BACKEND != "rules":
        logger.warning("Unknown NLU_BACKEND %r, using rules", config.NLU_BACKEND)
    return _rules
