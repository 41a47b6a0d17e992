"""
Utterance Patterns.

Regexes the engine uses to re-check what the language step proposed: reset
and done phrases, correction cues, affirmatives, and the assistant questions
a bare "yes" or "no" can answer. The rule-based proposer uses the same
patterns so both backends agree on what counts as "done".
"""

import re

# =============================================================================
# Word to Number Mapping
# =============================================================================

WORD_TO_NUM = {
    "a": 1, "an": 1, "one": 1, "single": 1,
    "two": 2, "couple": 2, "a couple": 2, "a couple of": 2, "couple of": 2, "pair of": 2,
    "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}

NUMBER_WORD_PATTERN = r"\b(?:\d+|a\s+couple(?:\s+of)?|couple(?:\s+of)?|pair\s+of|two|three|four|five|six|seven|eight|nine|ten)\b"


def word_to_number(text: str) -> int | None:
    """Convert "2", "two" or "a couple of" to an int."""
    cleaned = re.sub(r"\s+", " ", text.strip().lower())
    if cleaned.isdigit():
        return int(cleaned)
    return WORD_TO_NUM.get(cleaned)


def utterance_numbers(utterance: str) -> set[int]:
    """Every quantity of two or more stated in an utterance."""
    numbers = set()
    for match in re.finditer(NUMBER_WORD_PATTERN, utterance.lower()):
        value = word_to_number(match.group(0))
        if value and value >= 2:
            numbers.add(value)
    return numbers


# =============================================================================
# Conversation Control
# =============================================================================

GREETING_PATTERN = re.compile(
    r"^(hi|hello|hey|hiya|good morning|good afternoon|good evening|howdy|yo)"
    r"(\s+(there|sarah|barista))?[\s!.,]*$",
    re.IGNORECASE
)

RESET_PATTERN = re.compile(
    r"\b(start\s+over|start\s+again|clear\s+(?:the\s+|my\s+)?(?:order|cart)|"
    r"cancel\s+(?:the\s+|my\s+)?(?:whole\s+|entire\s+)?order|reset(?:\s+(?:the\s+|my\s+)?order)?|"
    r"scratch\s+everything|never\s*mind\s+everything|forget\s+everything)\b",
    re.IGNORECASE
)

# A negation between the start of a clause and the end of the text
NEGATION_BEFORE_PATTERN = re.compile(
    r"\b(?:don'?t|do\s+not|doesn'?t|not|never|won'?t|no\s+need\s+to)\b[^,.;!?]*$",
    re.IGNORECASE
)

# Done ordering. Bare "no" counts: it answers "anything else?" and the pastry offer.
DONE_PATTERN = re.compile(
    r"^(?:(?:no|nope|ok(?:ay)?|yes|yeah|yep|great|perfect|thanks|thank you)[\s,!.]+)?"
    r"(that'?s\s*(all|it|everything)(\s+for\s+(me|now|today))?|no(pe)?(\s*thanks?|\s*thank\s*you)?|"
    r"nah|nothing(\s*(else|more))?|i'?m\s*(good|done|all\s*set|finished)|done|all\s*set|"
    r"that\s*will\s*be\s*all|that'?ll\s*be\s*all|place\s*(the\s*|my\s*)?order|"
    r"(i'?m\s*)?ready\s*to\s*(pay|order)|check\s*out|checkout)"
    r"(\s*,?\s*(thanks|thank\s*you|please))?[\s!.,]*$",
    re.IGNORECASE
)

AFFIRMATIVE_PATTERN = re.compile(
    r"^(yes|yeah|yep|yup|sure|ok(ay)?|sounds good|why not|please|yes please|"
    r"sure thing|i'?d like that|go ahead|definitely|absolutely)[\s!.,]*$",
    re.IGNORECASE
)

# Cues that an attribute overrides a value already set, not fills a gap
CORRECTION_CUE_PATTERN = re.compile(
    r"\b(actually|make\s+(?:it|that|them)|change|switch|instead|i\s+meant|rather)\b",
    re.IGNORECASE
)


# =============================================================================
# Assistant Questions
# =============================================================================
# Matched against the last assistant turn to interpret short replies.

PASTRY_OFFER_PATTERN = re.compile(
    r"\b(add\s+a\s+pastry|something\s+to\s+eat|pastry\s+with\s+that|like\s+a\s+pastry)\b",
    re.IGNORECASE
)

EVERYTHING_QUESTION_PATTERN = re.compile(
    r"\b(is\s+that\s+(everything|all|it)|will\s+that\s+be\s+all|all\s+set|"
    r"ready\s+to\s+(order|place|check\s*out))\b",
    re.IGNORECASE
)

# Temperature words in the order they appear, for "last marker wins"
TEMPERATURE_MARKER_PATTERN = re.compile(r"\b(hot|iced|ice|cold)\b", re.IGNORECASE)


def last_temperature_marker(utterance: str | None) -> str | None:
    """The temperature the customer said last: "hot" or "iced"."""
    if not utterance:
        return None
    # "less ice" / "no ice" are ice levels, not a temperature
    cleaned = re.sub(r"\b(no|less|light|extra|more|easy|without)\s+ice\b", "", utterance, flags=re.IGNORECASE)
    markers = TEMPERATURE_MARKER_PATTERN.findall(cleaned)
    if not markers:
        return None
    return "hot" if markers[-1].lower() == "hot" else "iced"


def is_done_phrase(utterance: str | None) -> bool:
    return bool(utterance) and bool(DONE_PATTERN.match(utterance.strip()))


def is_affirmative(utterance: str | None) -> bool:
    return bool(utterance) and bool(AFFIRMATIVE_PATTERN.match(utterance.strip()))


def is_reset_request(utterance: str | None) -> bool:
    """A reset phrase not negated earlier in its clause ("I don't want to start over")."""
    if not utterance:
        return False
    match = RESET_PATTERN.search(utterance)
    if match is None:
        return False
    return not NEGATION_BEFORE_PATTERN.search(utterance[:match.start()])


def has_correction_cue(utterance: str | None) -> bool:
    return bool(utterance) and bool(CORRECTION_CUE_PATTERN.search(utterance))
