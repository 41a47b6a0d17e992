"""
Rule-Based Turn Proposer.

Deterministic parsing of customer utterances into a TurnProposal, used when no
LLM is configured and in tests. Like the LLM it only extracts intent; the order
engine applies the menu rules afterwards, so unsupported words ("medium",
"lukewarm", "soy milk") are passed through as said.

Parsing order:
    1. reset and done phrases
    2. remove / replace / "make it N" patterns
    3. questions (sizes, prices, menu, order status)
    4. token scan: shots, syrups, ounce sizes, unsupported extras, ice and
       sugar levels, milk, items (longest alias first), sizes, temperatures.
       Each match is blanked out before the next scanner runs.
    5. attributes are grouped with the item in their clause; with no item at
       all they become one implicit "set" update.
"""

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from ..engine.catalog import MODIFIERS, Category, ModifierKind, MenuCatalog, get_catalog, normalize_name
from ..engine.formatting import format_cart
from ..engine.message_builder import MessageBuilder, join_words
from ..engine.patterns import (
    EVERYTHING_QUESTION_PATTERN,
    GREETING_PATTERN,
    has_correction_cue,
    is_affirmative,
    is_done_phrase,
    is_reset_request,
    utterance_numbers,
    word_to_number,
)
from ..engine.pricing import PricingEngine
from ..engine.schemas import (
    CartLine,
    ConversationTurn,
    ProposedUpdate,
    TargetRef,
    TurnProposal,
    UpdateAction,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Intent Patterns
# =============================================================================

_LEAD_IN = r"^(?:(?:actually|no|oh|wait|sorry|um+|uh+|hmm+|ok(?:ay)?)[,!.]?\s+)*"

# "the croissant", "my latte": an item the customer already ordered
DEFINITE_REFERENCE_PATTERN = re.compile(r"\b(?:the|my)\s+$", re.IGNORECASE)

# "remove the latte", "cancel one cookie", "take the croissant off"
CANCEL_ITEM_PATTERN = re.compile(
    _LEAD_IN
    + r"(?:(?:can\s+you\s+|could\s+you\s+|please\s+)?"
    r"(?:cancel|remove|delete|drop|scratch|take\s+off|take\s+away|take(?=.*\boff\b)|get\s+rid\s+of)|"
    r"i\s+don'?t\s+want)\s+"
    r"(?:the\s+|my\s+)?(?:(?P<count>\d+|one|two|three|four|a|an)\s+)?"
    r"(?P<target>.*?)(?:\s+off)?(?:\s+(?:from|of)\s+(?:my|the)\s+order)?(?:\s+please)?[\s!.,]*$",
    re.IGNORECASE
)

_IMPLICIT_TARGETS = {"", "that", "it", "this", "the last one", "last one", "the last thing", "that one"}

# "actually make that a mocha", "switch it to a cold brew"
REPLACE_ITEM_PATTERN = re.compile(
    _LEAD_IN
    + r"(?:(?:can\s+you\s+|could\s+you\s+|please\s+)?(?:make|change|turn)\s+(?:it|that|this)(?:\s+(?:to|into))?|"
    r"switch\s+(?:it\s+|that\s+)?to|swap\s+(?:it|that)\s+(?:for|with)|i\s+meant)\s+"
    r"(?:an?\s+)?(?P<new>.+?)(?:\s+instead)?[\s!.,]*$",
    re.IGNORECASE
)

# "change the latte to a mocha"
CHANGE_ITEM_PATTERN = re.compile(
    _LEAD_IN
    + r"(?:change|switch|swap)\s+(?:the\s+|my\s+)?(?P<old>.+?)\s+(?:to|for|with|into)\s+"
    r"(?:an?\s+)?(?P<new>.+?)(?:\s+instead)?[\s!.,]*$",
    re.IGNORECASE
)

# "make it two", "make that 3"
MAKE_IT_N_PATTERN = re.compile(
    _LEAD_IN
    + r"(?:make\s+(?:it|that|them)|change\s+(?:it|that)\s+to|i'?ll\s+take)\s+"
    r"(?P<count>\d+|one|two|three|four|five|six|seven|eight|nine|ten)"
    r"(?:\s+of\s+(?:them|those))?[\s!.,]*$",
    re.IGNORECASE
)

SIZE_QUESTION_PATTERN = re.compile(
    r"\b(how\s+big|what\s+sizes?|how\s+many\s+ounces|how\s+large\s+is|how\s+small\s+is|"
    r"what\s+size\s+is|sizes\s+do\s+you)\b",
    re.IGNORECASE
)

PRICE_QUESTION_PATTERN = re.compile(
    r"\b(how\s+much|what\s+does\s+.+\s+cost|price\s+of|cost\s+of|what'?s\s+the\s+price)\b",
    re.IGNORECASE
)

ORDER_STATUS_PATTERN = re.compile(
    r"\b(what(?:'?s|\s+is)\s+(?:my|the)\s+(?:total|order)|what\s+do\s+i\s+have|"
    r"what\s+did\s+i\s+order|read\s+(?:it|that|my\s+order)\s+back|what'?s\s+in\s+my\s+(?:order|cart))\b",
    re.IGNORECASE
)

MENU_QUESTION_PATTERN = re.compile(
    r"\b(menu|what\s+do\s+you\s+(?:have|sell|serve|offer)|what\s+(?:drinks|pastries|teas|coffees)|"
    r"what\s+kinds?\s+of|what\s+are\s+(?:my|the|your)\s+options)\b",
    re.IGNORECASE
)

ORDER_REQUEST_PATTERN = re.compile(
    r"^(?:(?:hi|hello|hey)[,!.]?\s+)?(?:(?:can|could|may)\s+i\s+(?:get|have|order)|"
    r"i(?:'?d|\s+would)\s+like|i\s+(?:want|need)|i'?ll\s+(?:have|take|get)|give\s+me|"
    r"let\s+me\s+(?:get|have)|do\s+you\s+have)\s+(?:an?\s+|some\s+|the\s+)?(?P<item>.+?)"
    r"(?:\s+please)?[\s!.,?]*$",
    re.IGNORECASE
)

# Separators between the clauses of a multi-item order
CLAUSE_SEPARATOR_PATTERN = re.compile(r",|;|\.\s|\band\b|\bplus\b|\balso\b|\bthen\b", re.IGNORECASE)


# =============================================================================
# Token Scanners
# =============================================================================

_COUNT = r"\d+|one|two|three|four|five|six|a|an|double|triple"
_COUNT_WORDS = {"a": 1, "an": 1, "one": 1, "double": 2, "triple": 3}

SHOT_PATTERN = re.compile(
    r"\b(?:(?P<count>" + _COUNT + r")\s+)?(?:extra\s+)?(?P<kind1>espresso|matcha)?\s*shots?"
    r"(?:\s+of\s+(?P<kind2>espresso|matcha))?\b"
    r"|\b(?:an?\s+)?extra\s+(?P<kind3>espresso|matcha)\b",
    re.IGNORECASE
)

SYRUP_PATTERN = re.compile(
    r"\b(?:(?P<count>" + _COUNT + r")\s+)?(?:extra\s+)?(?P<pump>pumps?\s+(?:of\s+)?)?"
    r"(?P<flavor>caramel|hazelnut|vanilla|white\s+chocolate|chocolate|peppermint|pumpkin\s+spice|"
    r"pumpkin|lavender|toffee|cinnamon|mocha)(?P<suffix>\s+(?:syrup|sauce|pumps?))?\b",
    re.IGNORECASE
)

# Flavors we stock, which customers name without saying "syrup"
_BARE_FLAVORS = {"caramel", "hazelnut"}

OUNCE_PATTERN = re.compile(r"\b(12|16|twelve|sixteen)\s*(?:oz|ounces?)\b", re.IGNORECASE)

EXTRAS_PATTERN = re.compile(
    r"\b(whipped\s+cream|whip|extra\s+foam|no\s+foam|foam|sprinkles|caramel\s+drizzle|drizzle|"
    r"cinnamon\s+powder|sugar\s+on\s+the\s+side|water\s+cup|cup\s+of\s+water|side\s+of\s+ice|"
    r"decaf|half\s+caf|sugar\s+free\s+syrup)\b",
    re.IGNORECASE
)

MILK_PATTERN = re.compile(
    r"\b(?:(?:whole|skim|non-?fat|oat|almond|soy|coconut|rice|cashew|macadamia|lactose[\s-]free|regular)"
    r"\s*milk|oatmilk|almondmilk|half\s+and\s+half|breve|oat|almond|skim|soy|coconut|non-?fat)\b",
    re.IGNORECASE
)

SIZE_PATTERN = re.compile(
    r"\b(extra\s+large|extra\s+small|small|large|medium|med|tall|grande|venti|trenta|regular|big|"
    r"kids?\s+size|xl)\b",
    re.IGNORECASE
)

TEMPERATURE_PATTERN = re.compile(
    r"\b(extra\s+hot|very\s+hot|lukewarm|warmed\s+up|warm\s+up|warmed|warm|heated|toasted|"
    r"room\s+temperature|extra\s+cold|frozen|blended|hot|iced|on\s+ice|over\s+ice|cold)\b",
    re.IGNORECASE
)

_GENERIC_ITEM_WORDS = ("something to eat", "something to drink", "coffee", "tea", "croissant",
                       "pastry", "pastries", "drink")


@dataclass
class Token:
    start: int
    end: int
    kind: str  # item, size, temperature, milk, modifier
    value: str


class RuleBasedProposer:
    """
    Deterministic TurnProposal extraction.

    Callable as a proposer: proposer(message, cart, history).
    """

    def __init__(self, catalog: MenuCatalog | None = None):
        self.catalog = catalog or get_catalog()
        self.messages = MessageBuilder(self.catalog)
        self.pricing = PricingEngine(self.catalog)

        names = set(self.catalog.aliases()) | set(_GENERIC_ITEM_WORDS)
        alternation = "|".join(re.escape(n) for n in sorted(names, key=len, reverse=True))
        self.item_pattern = re.compile(r"\b(?:" + alternation + r")(?:e?s)?\b", re.IGNORECASE)

        levels = [
            alias
            for m in MODIFIERS.values() if m.kind in (ModifierKind.ICE, ModifierKind.SWEETNESS)
            for alias in m.aliases
        ]
        self.level_pattern = re.compile(
            r"\b(?:" + "|".join(re.escape(a) for a in sorted(levels, key=len, reverse=True)) + r")\b",
            re.IGNORECASE
        )

    def __call__(
        self,
        message: str,
        cart: Sequence[CartLine] = (),
        history: Sequence[ConversationTurn] = (),
    ) -> TurnProposal:
        return self.propose(message, cart, history)

    def propose(
        self,
        message: str,
        cart: Sequence[CartLine] = (),
        history: Sequence[ConversationTurn] = (),
    ) -> TurnProposal:
        """
        Parse one utterance.

        Args:
            message: What the customer said.
            cart: Current cart, used for status answers and to tell edits of
                an ordered item apart from new items.
            history: Prior turns; the last assistant turn gives short replies
                their meaning.
        """
        text = self._clean(message)
        last_assistant = next((t.text for t in reversed(history) if t.role == "assistant"), None)

        if not text:
            return TurnProposal(response=self.messages.fallback())
        if is_reset_request(text):
            return TurnProposal(reset_signal=True, response=self.messages.reset())
        if is_done_phrase(text):
            return TurnProposal(closing_signal=True)
        if is_affirmative(text):
            # "yes" closes only as an answer to "is that everything?"
            everything = bool(last_assistant) and bool(EVERYTHING_QUESTION_PATTERN.search(last_assistant))
            return TurnProposal(closing_signal=everything)

        for parse in (self._parse_make_it_n, self._parse_cancel, self._parse_change, self._parse_replace):
            proposal = parse(text, cart)
            if proposal is not None:
                return proposal

        answer = self._answer_question(text, cart)
        if answer is not None:
            return TurnProposal(response=answer)

        # "a cookie, that's all"
        closing = False
        clauses = [c for c in re.split(r"[,.;!]\s*|\s+and\s+(?=that)", text) if c.strip()]
        if len(clauses) > 1 and is_done_phrase(clauses[-1]):
            closing = True
            text = text[: text.rfind(clauses[-1])]

        updates = self.extract_updates(text, cart)
        if updates:
            return TurnProposal(updates=updates, closing_signal=closing)
        if closing:
            return TurnProposal(closing_signal=True)

        if last_assistant and "?" in last_assistant and len(text.split()) <= 3 \
                and not GREETING_PATTERN.match(text):
            # Short answer to "Plain Croissant or Chocolate Croissant?"
            return TurnProposal(updates=[ProposedUpdate(item=text)])

        if GREETING_PATTERN.match(text):
            return TurnProposal(response=self.messages.greeting())

        request = ORDER_REQUEST_PATTERN.match(text)
        if request:
            return TurnProposal(updates=[ProposedUpdate(item=request.group("item"))])

        logger.debug("No intent recognized")
        return TurnProposal(response="Sorry, I didn't catch that. What can I get for you?")

    # -------------------------------------------------------------------------
    # Pattern intents
    # -------------------------------------------------------------------------

    def _parse_make_it_n(self, text: str, cart) -> TurnProposal | None:
        match = MAKE_IT_N_PATTERN.match(text)
        if not match or not cart:
            return None
        count = word_to_number(match.group("count"))
        return TurnProposal(updates=[ProposedUpdate(
            action=UpdateAction.SET, target=TargetRef.IMPLICIT, quantity=count,
        )])

    def _parse_cancel(self, text: str, cart) -> TurnProposal | None:
        match = CANCEL_ITEM_PATTERN.match(text)
        if not match:
            return None
        target = normalize_name(match.group("target") or "")
        count = match.group("count")
        quantity = None
        if count:
            quantity = _COUNT_WORDS.get(count.lower()) or word_to_number(count)
        if target in _IMPLICIT_TARGETS:
            return TurnProposal(updates=[ProposedUpdate(action=UpdateAction.REMOVE, target=TargetRef.IMPLICIT)])
        item = self._first_item(target)
        return TurnProposal(updates=[ProposedUpdate(
            action=UpdateAction.REMOVE,
            target=TargetRef.EXPLICIT,
            target_item=item or target,
            quantity=quantity,
        )])

    def _parse_change(self, text: str, cart) -> TurnProposal | None:
        match = CHANGE_ITEM_PATTERN.match(text)
        if not match:
            return None
        old_item = self._first_item(match.group("old"))
        if old_item is None or old_item in ("it", "that"):
            return None
        updates = self.extract_updates(match.group("new"), ())
        if not updates:
            return None
        new = updates[0]
        if new.item is None:
            # "change the latte to large"
            return TurnProposal(updates=[new.model_copy(update={
                "action": UpdateAction.SET, "target": TargetRef.EXPLICIT, "target_item": old_item,
            })])
        return TurnProposal(updates=[new.model_copy(update={
            "action": UpdateAction.REPLACE, "target": TargetRef.EXPLICIT, "target_item": old_item,
        })])

    def _parse_replace(self, text: str, cart) -> TurnProposal | None:
        match = REPLACE_ITEM_PATTERN.match(text)
        if not match:
            return None
        updates = self.extract_updates(match.group("new"), ())
        if not updates or updates[0].item is None:
            # "make it large": an attribute change, handled by the token scan
            return None
        return TurnProposal(updates=[updates[0].model_copy(update={
            "action": UpdateAction.REPLACE, "target": TargetRef.IMPLICIT,
        })])

    # -------------------------------------------------------------------------
    # Questions
    # -------------------------------------------------------------------------

    def _answer_question(self, text: str, cart) -> str | None:
        if SIZE_QUESTION_PATTERN.search(text):
            return self.messages.size_info()
        if ORDER_STATUS_PATTERN.search(text):
            if not cart:
                return "You don't have anything in your order yet. What would you like?"
            total = self.pricing.order_total(cart)
            return f"You have {format_cart(cart)}. Your total so far is ${total:.2f}."
        if PRICE_QUESTION_PATTERN.search(text):
            name = self._first_item(text)
            item = self.catalog.lookup(name) if name else None
            if item is None:
                return None
            if item.has_size_axis:
                prices = join_words([f"${item.prices[s]:.2f} {s}" for s in item.sizes], "and")
                return f"The {item.name} is {prices}."
            return f"The {item.name} is ${item.base_price():.2f}."
        if MENU_QUESTION_PATTERN.search(text) and self._first_item(text) is None:
            coffee = join_words(self.catalog.item_names(Category.COFFEE), "and")
            return f"We have coffee drinks like {coffee}, plus teas and pastries. What can I get for you?"
        return None

    # -------------------------------------------------------------------------
    # Token scan
    # -------------------------------------------------------------------------

    def extract_updates(self, text: str, cart: Sequence[CartLine] = ()) -> list[ProposedUpdate]:
        """Turn item and attribute mentions into proposed updates."""
        tokens, masked = self.scan(text)
        if not tokens:
            return []

        items = [t for t in tokens if t.kind == "item"]
        attributes = [t for t in tokens if t.kind != "item"]
        clause_starts = [0] + [m.end() for m in CLAUSE_SEPARATOR_PATTERN.finditer(text)]

        def clause_of(position: int) -> int:
            return sum(1 for start in clause_starts[1:] if start <= position)

        if not items:
            return [self._build(None, attributes, None, UpdateAction.SET, TargetRef.IMPLICIT)]

        owned: dict[int, list[Token]] = {id(item): [] for item in items}
        for attr in attributes:
            owner = self._owner(attr, items, clause_of)
            owned[id(owner)].append(attr)

        ordered_names = {line.item_name for line in cart}
        correction = has_correction_cue(text)
        updates = []
        previous_end = 0
        for item in items:
            window_start = max(previous_end, clause_starts[clause_of(item.start)])
            numbers = utterance_numbers(masked[window_start:item.start])
            quantity = max(numbers) if numbers else None
            previous_end = item.end

            menu_item = self.catalog.lookup(item.value)
            edits_ordered = correction or DEFINITE_REFERENCE_PATTERN.search(masked[window_start:item.start])
            if edits_ordered and menu_item is not None and menu_item.name in ordered_names and owned[id(item)]:
                # "actually make the latte iced", "warm up the croissant"
                updates.append(self._build(item.value, owned[id(item)], quantity,
                                           UpdateAction.SET, TargetRef.EXPLICIT))
            else:
                updates.append(self._build(item.value, owned[id(item)], quantity,
                                           UpdateAction.ADD, TargetRef.NEW))
        return updates

    def scan(self, text: str) -> tuple[list[Token], str]:
        """
        Find item and attribute mentions.

        Returns the tokens in text order, and the text with every match
        blanked out (numbers left over are item quantities).
        """
        tokens: list[Token] = []
        masked = text

        def take(kind: str, value: str, start: int, end: int) -> None:
            nonlocal masked
            tokens.append(Token(start, end, kind, value))
            masked = masked[:start] + " " * (end - start) + masked[end:]

        for m in SHOT_PATTERN.finditer(masked):
            count = self._count(m.group("count"))
            kind = m.group("kind1") or m.group("kind2") or m.group("kind3")
            value = f"{count} extra {kind.lower()} shot" if kind else f"{count} extra shot"
            take("modifier", value, m.start(), m.end())

        for m in SYRUP_PATTERN.finditer(masked):
            flavor = re.sub(r"\s+", " ", m.group("flavor").lower())
            if not m.group("pump") and not m.group("suffix"):
                if flavor not in _BARE_FLAVORS:
                    continue
                # "2 caramel lattes": the number belongs to the drink
                take("modifier", f"1 pumps {flavor} syrup", m.start("flavor"), m.end())
                continue
            count = self._count(m.group("count")) if m.group("pump") else 1
            start = m.start() if m.group("pump") else m.start("flavor")
            take("modifier", f"{count} pumps {flavor} syrup", start, m.end())

        for m in OUNCE_PATTERN.finditer(masked):
            size = "small" if m.group(1).lower() in ("12", "twelve") else "large"
            take("size", size, m.start(), m.end())

        for m in EXTRAS_PATTERN.finditer(masked):
            take("modifier", m.group(0).lower(), m.start(), m.end())

        for m in self.level_pattern.finditer(masked):
            take("modifier", m.group(0).lower(), m.start(), m.end())

        for m in MILK_PATTERN.finditer(masked):
            take("milk", m.group(0).lower(), m.start(), m.end())

        for m in self.item_pattern.finditer(masked):
            take("item", m.group(0).lower(), m.start(), m.end())

        for m in SIZE_PATTERN.finditer(masked):
            take("size", m.group(0).lower(), m.start(), m.end())

        for m in TEMPERATURE_PATTERN.finditer(masked):
            take("temperature", m.group(0).lower(), m.start(), m.end())

        tokens.sort(key=lambda t: t.start)
        return tokens, masked

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _clean(message: str) -> str:
        text = (message or "").replace("’", "'").strip()
        return re.sub(r"\s+", " ", text)

    @staticmethod
    def _count(word: str | None) -> int:
        if not word:
            return 1
        word = word.lower()
        return _COUNT_WORDS.get(word) or word_to_number(word) or 1

    def _first_item(self, text: str) -> str | None:
        match = self.item_pattern.search(text or "")
        return match.group(0).lower() if match else None

    @staticmethod
    def _owner(attr: Token, items: list[Token], clause_of) -> Token:
        """
        The item an attribute belongs to: the nearest item before it in the
        same clause, else the nearest after it in the same clause, else the
        last item of an earlier clause, else the first item.
        """
        clause = clause_of(attr.start)
        same_clause = [i for i in items if clause_of(i.start) == clause]
        before = [i for i in same_clause if i.start < attr.start]
        if before:
            return before[-1]
        after = [i for i in same_clause if i.start > attr.start]
        if after:
            return after[0]
        earlier = [i for i in items if i.start < attr.start]
        if earlier:
            return earlier[-1]
        return items[0]

    @staticmethod
    def _build(item, attributes, quantity, action, target) -> ProposedUpdate:
        size = None
        milk = None
        temperatures = []
        modifiers = []
        for attr in attributes:
            if attr.kind == "size":
                size = attr.value
            elif attr.kind == "milk":
                milk = attr.value
            elif attr.kind == "temperature":
                temperatures.append(attr.value)
            else:
                modifiers.append(attr.value)
        return ProposedUpdate(
            action=action,
            target=target,
            target_item=item if target == TargetRef.EXPLICIT else None,
            item=item if action != UpdateAction.SET else None,
            size=size,
            temperature=temperatures[0] if temperatures else None,
            # Further temperature words are resolved by the merge step
            milk=milk,
            modifiers=modifiers + temperatures[1:],
            quantity=quantity,
        )
