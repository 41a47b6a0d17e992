"""
Configuration Module for Barista Bot
====================================

This module centralizes the configuration settings, environment variables, and
constants used throughout the Barista Bot application. Values are parsed once
at module load time so that misconfiguration shows up at startup rather than
in the middle of a conversation.

Configuration Categories:
-------------------------
- **Store**: The display name used in greetings and receipts.

- **Database**: Connection URL for the order store. SQLite is the default for
  local development; production deployments point this at PostgreSQL.

- **Language Understanding**: Which proposer turns an utterance into a cart
  update ("llm" for the OpenAI-backed parser, "rules" for the deterministic
  parser) and the model to call.

- **Conversation**: How many prior turns are kept as context.

- **Menu Limits**: Caps on per-drink shots and syrup pumps enforced by the
  modifier validator.

- **Rate Limiting / Input Validation / CORS**: HTTP surface protections.

Environment Variables:
----------------------
- STORE_NAME: Name of the counter (default: "Tarro")
- DATABASE_URL: SQLAlchemy URL (default: "sqlite:///./barista_bot.db")
- OPENAI_API_KEY: API key for the LLM proposer
- OPENAI_MODEL: Model name for the LLM proposer (default: "gpt-4o-mini")
- NLU_BACKEND: "llm" or "rules" (default: "llm" when an API key is set)
- HISTORY_MAX_TURNS: Conversation turns kept as context (default: 12)
- MAX_EXTRA_SHOTS: Extra espresso/matcha shots per drink (default: 2)
- MAX_SYRUP_PUMPS: Syrup pumps per drink (default: 4)
- RATE_LIMIT_CHAT: Chat endpoint rate limit (default: "30 per minute")
- RATE_LIMIT_ENABLED: Enable/disable rate limiting (default: "true")
- MAX_MESSAGE_LENGTH: Max user message length (default: 2000)
- CORS_ORIGINS: Comma-separated allowed origins (default: "*")

Usage:
------
    from barista_bot.config import (
        HISTORY_MAX_TURNS,
        MAX_EXTRA_SHOTS,
        get_rate_limit_chat,
    )
"""

import os
from typing import List


# =============================================================================
# Store Configuration
# =============================================================================

STORE_NAME: str = os.getenv("STORE_NAME", "Tarro")


# =============================================================================
# Database Configuration
# =============================================================================
# Orders double as conversation sessions: an open order is a session in
# progress, a closed order is a ticket on the kitchen queue.

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./barista_bot.db")


# =============================================================================
# Language Understanding Configuration
# =============================================================================
# The LLM only extracts intent (items, attributes, closing/reset signals).
# Every business rule is enforced afterwards by the order engine.

OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# Fall back to the deterministic parser when no key is configured so local
# development and tests never reach the network.
NLU_BACKEND: str = os.getenv("NLU_BACKEND", "llm" if OPENAI_API_KEY else "rules").lower()


# =============================================================================
# Conversation Configuration
# =============================================================================

# Number of prior turns (user + assistant) passed along as context
HISTORY_MAX_TURNS: int = int(os.getenv("HISTORY_MAX_TURNS", "12"))


# =============================================================================
# Menu Limits
# =============================================================================
# Caps applied per drink. Requests above the cap are clamped and the customer
# is told about it.

MAX_EXTRA_SHOTS: int = int(os.getenv("MAX_EXTRA_SHOTS", "2"))
MAX_SYRUP_PUMPS: int = int(os.getenv("MAX_SYRUP_PUMPS", "4"))


# =============================================================================
# Rate Limiting Configuration
# =============================================================================
# Uses slowapi with in-memory storage (use Redis for multi-worker prod).

RATE_LIMIT_CHAT: str = os.getenv("RATE_LIMIT_CHAT", "30 per minute")
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_rate_limit_chat() -> str:
    """
    Return the current chat rate limit.

    This function allows dynamic override in tests without modifying
    the module-level constant.
    """
    return RATE_LIMIT_CHAT


# =============================================================================
# Input Validation Configuration
# =============================================================================

# Maximum allowed message length in characters
MAX_MESSAGE_LENGTH: int = int(os.getenv("MAX_MESSAGE_LENGTH", "2000"))


# =============================================================================
# CORS Configuration
# =============================================================================
# Format: comma-separated list of origins, e.g. "https://tarro.example"
# Default "*" allows all origins (suitable for development only)

_cors_origins_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in _cors_origins_env.split(",")
    if origin.strip()
] or ["*"]
