"""
Language Understanding for Barista Bot
======================================

Turns a customer utterance into a TurnProposal. Two backends:

- **llm_client**: instructor structured outputs over the OpenAI client
- **rules**: deterministic regex parser, used without an API key and in tests

Usage:
------
    from barista_bot.nlu import get_proposer
    proposal = get_proposer()(message, cart, history)
"""

from .proposer import Proposer, get_proposer, llm_proposer
from .rules import RuleBasedProposer

__all__ = ["Proposer", "get_proposer", "llm_proposer", "RuleBasedProposer"]
