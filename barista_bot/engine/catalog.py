"""
Menu Catalog.

The fixed menu for the counter: items, sizes, temperatures, milk rules, add-on
modifiers and their surcharges. Everything here is immutable and built once at
import time; the rest of the engine asks the catalog questions instead of
hard-coding item names.

Name matching is case-insensitive and goes through a fixed synonym table.
Generic names ("coffee", "tea", "croissant", "drink", "pastry") are ambiguous
on purpose: lookup() never resolves them, candidates() lists the options so the
caller can ask which one the customer meant.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping

from .. import config


class Category(str, Enum):
    """Menu section an item belongs to."""
    COFFEE = "coffee"
    TEA = "tea"
    PASTRY = "pastry"


class MilkRule(str, Enum):
    """Whether a drink must, may, or must not carry a milk choice."""
    REQUIRED = "required"
    OPTIONAL = "optional"
    FORBIDDEN = "forbidden"


class ModifierKind(str, Enum):
    SHOT = "shot"
    SYRUP = "syrup"
    SWEETNESS = "sweetness"
    ICE = "ice"


# Only one sweetness level and one ice level per drink
EXCLUSIVE_KINDS = frozenset({ModifierKind.SWEETNESS, ModifierKind.ICE})


@dataclass(frozen=True)
class Modifier:
    """An add-on or free customization and what it costs per unit."""
    key: str
    label: str
    kind: ModifierKind
    surcharge: Decimal
    aliases: tuple[str, ...] = ()


@dataclass(frozen=True)
class MenuItem:
    """A single menu entry. Pastries have no sizes, temperatures or milk."""
    name: str
    category: Category
    prices: Mapping[str, Decimal]
    temperatures: tuple[str, ...] = ()
    milk: MilkRule | None = None
    modifiers: frozenset[str] = field(default_factory=frozenset)
    aliases: tuple[str, ...] = ()

    @property
    def is_pastry(self) -> bool:
        return self.category == Category.PASTRY

    @property
    def is_drink(self) -> bool:
        return not self.is_pastry

    @property
    def sizes(self) -> tuple[str, ...]:
        return tuple(size for size in SIZES if size in self.prices)

    @property
    def has_size_axis(self) -> bool:
        return bool(self.sizes)

    @property
    def requires_milk(self) -> bool:
        return self.milk == MilkRule.REQUIRED

    @property
    def forbids_milk(self) -> bool:
        return self.milk in (None, MilkRule.FORBIDDEN)

    def base_price(self, size: str | None = None) -> Decimal:
        """
        Base price for a size.

        Unsized items have a single price. A drink whose size has not been
        chosen yet is quoted at its smallest size.
        """
        if not self.has_size_axis:
            return self.prices[SINGLE_PRICE]
        if size in self.prices:
            return self.prices[size]
        return self.prices[self.sizes[0]]


# =============================================================================
# Sizes, Temperatures and Milk
# =============================================================================

SIZES = ("small", "large")
SIZE_OUNCES = {"small": 12, "large": 16}
SINGLE_PRICE = "each"

TEMPERATURES = ("hot", "iced")

MILK_SURCHARGES = MappingProxyType({
    "whole": Decimal("0.00"),
    "skim": Decimal("0.00"),
    "oat": Decimal("0.50"),
    "almond": Decimal("0.75"),
})

SIZE_SYNONYMS = {
    "small": "small", "sm": "small", "short": "small",
    "12 oz": "small", "12oz": "small", "12 ounce": "small", "twelve ounce": "small",
    "large": "large", "lg": "large", "big": "large",
    "16 oz": "large", "16oz": "large", "16 ounce": "large", "sixteen ounce": "large",
}

TEMPERATURE_SYNONYMS = {
    "hot": "hot", "steamed": "hot",
    "iced": "iced", "ice": "iced", "cold": "iced", "on ice": "iced", "over ice": "iced",
}

MILK_SYNONYMS = {
    "whole": "whole", "whole milk": "whole", "regular milk": "whole",
    "skim": "skim", "skim milk": "skim", "nonfat": "skim", "non-fat": "skim",
    "nonfat milk": "skim", "non-fat milk": "skim", "fat free": "skim",
    "oat": "oat", "oat milk": "oat", "oatmilk": "oat",
    "almond": "almond", "almond milk": "almond", "almondmilk": "almond",
}

# Words that name a size, temperature or milk we do not serve. They are kept
# as raw modifiers so the validator can reject them with a reason.
UNSUPPORTED_SIZES = frozenset({
    "medium", "med", "regular", "tall", "grande", "venti", "trenta",
    "extra large", "xl", "extra small", "kids", "kid size",
})
UNSUPPORTED_TEMPERATURES = frozenset({
    "lukewarm", "warm", "warmed", "warm up", "warmed up", "heated", "toasted",
    "extra hot", "very hot", "kids temp", "extra cold", "room temperature",
    "blended", "frozen",
})
UNSUPPORTED_MILKS = frozenset({
    "soy", "soy milk", "coconut", "coconut milk", "rice milk", "cashew milk",
    "macadamia milk", "lactose free", "lactose free milk", "2%", "2% milk",
    "half and half", "breve", "cream", "heavy cream",
})

# Requests that amount to heating a food item
WARMING_WORDS = frozenset({
    "hot", "warm", "warmed", "warm up", "warmed up", "heated", "toasted",
    "lukewarm", "extra hot", "very hot", "microwaved",
})


# =============================================================================
# Modifiers
# =============================================================================

MODIFIERS: Mapping[str, Modifier] = MappingProxyType({
    m.key: m for m in (
        Modifier("espresso_shot", "Extra espresso shot", ModifierKind.SHOT, Decimal("1.50"),
                 ("extra espresso shot", "espresso shot", "extra espresso", "espresso")),
        Modifier("matcha_shot", "Extra matcha shot", ModifierKind.SHOT, Decimal("1.50"),
                 ("extra matcha shot", "matcha shot", "extra matcha")),
        Modifier("caramel_syrup", "Caramel syrup", ModifierKind.SYRUP, Decimal("0.50"),
                 ("caramel syrup", "caramel", "caramel pump")),
        Modifier("hazelnut_syrup", "Hazelnut syrup", ModifierKind.SYRUP, Decimal("0.50"),
                 ("hazelnut syrup", "hazelnut", "hazelnut pump")),
        Modifier("no_sugar", "No sugar", ModifierKind.SWEETNESS, Decimal("0.00"),
                 ("no sugar", "unsweetened", "without sugar", "sugar free")),
        Modifier("less_sugar", "Less sugar", ModifierKind.SWEETNESS, Decimal("0.00"),
                 ("less sugar", "light sugar", "less sweet", "half sweet")),
        Modifier("extra_sugar", "Extra sugar", ModifierKind.SWEETNESS, Decimal("0.00"),
                 ("extra sugar", "more sugar", "extra sweet", "sweeter")),
        Modifier("no_ice", "No ice", ModifierKind.ICE, Decimal("0.00"),
                 ("no ice", "without ice")),
        Modifier("less_ice", "Less ice", ModifierKind.ICE, Decimal("0.00"),
                 ("less ice", "light ice", "easy ice")),
        Modifier("extra_ice", "Extra ice", ModifierKind.ICE, Decimal("0.00"),
                 ("extra ice", "more ice")),
    )
})

# "an extra shot" means matcha on a Matcha Latte and espresso everywhere else
GENERIC_SHOT_ALIASES = frozenset({"shot", "extra shot", "add shot", "double shot"})

_SWEETNESS_AND_SYRUP = frozenset({
    "caramel_syrup", "hazelnut_syrup", "no_sugar", "less_sugar", "extra_sugar",
})
_ICE_LEVELS = frozenset({"no_ice", "less_ice", "extra_ice"})
_COFFEE_MODIFIERS = frozenset({"espresso_shot"}) | _SWEETNESS_AND_SYRUP | _ICE_LEVELS
_TEA_MODIFIERS = _SWEETNESS_AND_SYRUP | _ICE_LEVELS
_MATCHA_MODIFIERS = frozenset({"matcha_shot"}) | _TEA_MODIFIERS

_NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "double": 2, "three": 3, "triple": 3,
    "four": 4, "five": 5, "six": 6,
}
_COUNTED_MODIFIER = re.compile(
    r"^(\d+|a|an|one|two|double|three|triple|four|five|six)\s+"
    r"(?:extra\s+)?(?:pumps?\s+(?:of\s+)?)?(.+)$"
)
_TIMES_SUFFIX = re.compile(r"^(.+?)\s*x\s*(\d+)$")


def _sized(small: str, large: str) -> Mapping[str, Decimal]:
    return MappingProxyType({"small": Decimal(small), "large": Decimal(large)})


def _single(price: str) -> Mapping[str, Decimal]:
    return MappingProxyType({SINGLE_PRICE: Decimal(price)})


_BOTH = ("hot", "iced")
_ICED = ("iced",)

MENU_ITEMS: tuple[MenuItem, ...] = (
    MenuItem("Americano", Category.COFFEE, _sized("3.00", "4.00"), _BOTH, MilkRule.OPTIONAL,
             _COFFEE_MODIFIERS, ("caffe americano", "cafe americano")),
    MenuItem("Latte", Category.COFFEE, _sized("4.50", "5.50"), _BOTH, MilkRule.REQUIRED,
             _COFFEE_MODIFIERS, ("caffe latte", "cafe latte", "coffee latte")),
    MenuItem("Cold Brew", Category.COFFEE, _sized("4.00", "5.00"), _ICED, MilkRule.OPTIONAL,
             _COFFEE_MODIFIERS, ("coldbrew", "cold brew coffee")),
    MenuItem("Mocha", Category.COFFEE, _sized("4.50", "5.50"), _BOTH, MilkRule.REQUIRED,
             _COFFEE_MODIFIERS, ("cafe mocha", "caffe mocha", "mocha latte")),
    MenuItem("Coffee Frappuccino", Category.COFFEE, _sized("5.50", "6.00"), _ICED, MilkRule.OPTIONAL,
             _COFFEE_MODIFIERS, ("frappuccino", "frap", "frappe", "frappé", "coffee frap")),
    MenuItem("Black Tea", Category.TEA, _sized("3.00", "3.75"), _BOTH, MilkRule.FORBIDDEN,
             _TEA_MODIFIERS, ("english breakfast", "english breakfast tea")),
    MenuItem("Jasmine Tea", Category.TEA, _sized("3.00", "3.75"), _BOTH, MilkRule.FORBIDDEN,
             _TEA_MODIFIERS, ("jasmine", "jasmine green tea")),
    MenuItem("Lemon Green Tea", Category.TEA, _sized("3.50", "4.25"), _BOTH, MilkRule.FORBIDDEN,
             _TEA_MODIFIERS, ("green tea", "lemon tea", "lemon green")),
    MenuItem("Matcha Latte", Category.TEA, _sized("4.50", "5.25"), _BOTH, MilkRule.REQUIRED,
             _MATCHA_MODIFIERS, ("matcha", "green tea latte", "matcha tea latte")),
    MenuItem("Plain Croissant", Category.PASTRY, _single("3.50"),
             aliases=("butter croissant", "regular croissant")),
    MenuItem("Chocolate Croissant", Category.PASTRY, _single("4.00"),
             aliases=("pain au chocolat",)),
    MenuItem("Chocolate Chip Cookie", Category.PASTRY, _single("2.50"),
             aliases=("cookie", "choc chip cookie", "chocolate cookie")),
    MenuItem("Banana Bread", Category.PASTRY, _single("3.00"),
             aliases=("banana bread slice", "slice of banana bread", "banana loaf")),
)

_GENERIC_NAMES = {
    "coffee": lambda item: item.category == Category.COFFEE,
    "tea": lambda item: item.category == Category.TEA,
    "croissant": lambda item: item.name.endswith("Croissant"),
    "pastry": lambda item: item.is_pastry,
    "pastries": lambda item: item.is_pastry,
    "drink": lambda item: item.is_drink,
    "something to eat": lambda item: item.is_pastry,
    "something to drink": lambda item: item.is_drink,
}

_ARTICLES = re.compile(r"^(?:a|an|the|some|one)\s+")


def normalize_name(name: str) -> str:
    """Lowercase, trim, and drop a leading article."""
    cleaned = re.sub(r"\s+", " ", (name or "").strip().lower())
    cleaned = cleaned.strip(" .,!?")
    return _ARTICLES.sub("", cleaned)


def _singular_forms(name: str) -> list[str]:
    """
    Possible singulars of a spoken word or phrase, most specific first.

    "cookies" and "pastries" end the same way but singularize differently,
    so callers try each form against their own table.
    """
    forms = []
    if name.endswith("ies"):
        forms.append(name[:-3] + "y")
    if name.endswith("ches") or name.endswith("shes"):
        forms.append(name[:-2])
    if name.endswith("s") and not name.endswith("ss"):
        forms.append(name[:-1])
    return forms


def _same_word(spoken: str, word: str) -> bool:
    return spoken == word or word in _singular_forms(spoken)


class MenuCatalog:
    """
    Read-only view over the menu.

    Caps for extra shots and syrup pumps default to the configured values;
    tests pass their own to exercise the validator.
    """

    def __init__(
        self,
        items: Iterable[MenuItem] = MENU_ITEMS,
        max_shots: int | None = None,
        max_syrup_pumps: int | None = None,
    ):
        self._items: tuple[MenuItem, ...] = tuple(items)
        self._by_name = {item.name.lower(): item for item in self._items}
        self._aliases: dict[str, MenuItem] = {}
        for item in self._items:
            self._aliases[item.name.lower()] = item
            for alias in item.aliases:
                self._aliases[alias] = item
        self._modifier_aliases: dict[str, str] = {}
        for modifier in MODIFIERS.values():
            self._modifier_aliases[modifier.label.lower()] = modifier.key
            self._modifier_aliases[modifier.key.replace("_", " ")] = modifier.key
            for alias in modifier.aliases:
                self._modifier_aliases[alias] = modifier.key
        self.max_shots = config.MAX_EXTRA_SHOTS if max_shots is None else max_shots
        self.max_syrup_pumps = config.MAX_SYRUP_PUMPS if max_syrup_pumps is None else max_syrup_pumps

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    @property
    def items(self) -> tuple[MenuItem, ...]:
        return self._items

    def item_names(self, category: Category | None = None) -> list[str]:
        return [i.name for i in self._items if category is None or i.category == category]

    def pastry_names(self) -> list[str]:
        return self.item_names(Category.PASTRY)

    def aliases(self) -> dict[str, str]:
        """Every alias (full names included) mapped to its item name."""
        return {alias: item.name for alias, item in self._aliases.items()}

    def lookup(self, name: str | None) -> MenuItem | None:
        """
        Resolve a spoken item name to a menu item.

        Returns None for unknown and for ambiguous names; use candidates() to
        tell the two apart.
        """
        if not name:
            return None
        key = normalize_name(name)
        if key in self._aliases:
            return self._aliases[key]
        for singular in _singular_forms(key):
            if singular in self._aliases:
                return self._aliases[singular]
        # "iced latte", "large mocha": drop a leading size or temperature word
        words = key.split(" ", 1)
        if len(words) == 2 and (words[0] in TEMPERATURE_SYNONYMS or words[0] in SIZE_SYNONYMS):
            return self.lookup(words[1])
        return None

    def candidates(self, name: str | None) -> list[str]:
        """Menu items a generic name could mean, or [] when it is not generic."""
        if not name:
            return []
        key = normalize_name(name)
        predicate = _GENERIC_NAMES.get(key)
        for singular in _singular_forms(key):
            predicate = predicate or _GENERIC_NAMES.get(singular)
        if predicate is None:
            # "iced coffee", "hot tea": a temperature plus a generic name
            words = key.split(" ", 1)
            if len(words) == 2 and words[0] in TEMPERATURE_SYNONYMS:
                return self.candidates(words[1])
            return []
        return [item.name for item in self._items if predicate(item)]

    def is_ambiguous(self, name: str | None) -> bool:
        return bool(self.candidates(name))

    def resolve_from_context(self, name: str | None, context: str | None) -> MenuItem | None:
        """
        Resolve a short answer against the items named in a prior question.

        After "Would you like a Plain Croissant or a Chocolate Croissant?" the
        reply "plain" resolves to Plain Croissant. Returns None unless exactly
        one offered item matches every word of the answer.
        """
        if not name or not context:
            return None
        context_lower = context.lower()
        offered = [item for item in self._items if item.name.lower() in context_lower]
        if not offered:
            return None
        words = [w for w in normalize_name(name).split() if w not in ("one", "please")]
        if not words:
            return None
        matches = [
            item for item in offered
            if all(any(_same_word(w, part) for part in item.name.lower().split()) for w in words)
        ]
        if len(matches) == 1:
            return matches[0]
        return None

    # -------------------------------------------------------------------------
    # Axes
    # -------------------------------------------------------------------------

    def legal_temperatures(self, item: MenuItem) -> tuple[str, ...]:
        return item.temperatures

    def requires_milk(self, item: MenuItem) -> bool:
        return item.requires_milk

    def allows_modifier(self, item: MenuItem, modifier: str, temperature: str | None = None) -> bool:
        """Whether a canonical modifier key is legal on an item at a temperature."""
        if item.is_pastry or modifier not in item.modifiers:
            return False
        mod = MODIFIERS.get(modifier)
        if mod is None:
            return False
        if mod.kind == ModifierKind.ICE:
            return temperature != "hot" and "iced" in item.temperatures
        return True

    def modifier(self, key: str) -> Modifier | None:
        return MODIFIERS.get(key)

    def cap_for(self, kind: ModifierKind) -> int | None:
        """Per-drink cap for a modifier kind, summed across keys of that kind."""
        if kind == ModifierKind.SHOT:
            return self.max_shots
        if kind == ModifierKind.SYRUP:
            return self.max_syrup_pumps
        if kind in EXCLUSIVE_KINDS:
            return 1
        return None

    # -------------------------------------------------------------------------
    # Normalization
    # -------------------------------------------------------------------------

    @staticmethod
    def normalize_size(raw: str | None) -> str | None:
        if not raw:
            return None
        return SIZE_SYNONYMS.get(normalize_name(raw).replace(" size", ""))

    @staticmethod
    def normalize_temperature(raw: str | None) -> str | None:
        if not raw:
            return None
        return TEMPERATURE_SYNONYMS.get(normalize_name(raw))

    @staticmethod
    def normalize_milk(raw: str | None) -> str | None:
        if not raw:
            return None
        return MILK_SYNONYMS.get(normalize_name(raw))

    def parse_modifier(self, raw: str, item: MenuItem | str | None = None) -> tuple[str, int]:
        """
        Turn a spoken modifier into (key, count).

        "2 pumps caramel" -> ("caramel_syrup", 2); "an extra shot" on a Matcha
        Latte -> ("matcha_shot", 1). Anything unrecognized comes back as the
        cleaned raw text so the validator can reject it by name.
        """
        text = normalize_name(raw)
        count = 1

        suffix = _TIMES_SUFFIX.match(text)
        if suffix:
            text, count = suffix.group(1), int(suffix.group(2))
        else:
            counted = _COUNTED_MODIFIER.match(text)
            if counted:
                word = counted.group(1)
                count = int(word) if word.isdigit() else _NUMBER_WORDS[word]
                text = counted.group(2)

        text = re.sub(r"\bpumps?\s+(?:of\s+)?", "", text).strip()
        text = re.sub(r"^(?:add|with|plus)\s+", "", text)
        text = re.sub(r"\bshots\b", "shot", text)
        text = re.sub(r"\bsyrups\b", "syrup", text)
        if text.startswith("extra ") and text[len("extra "):] in ("shots", "shot"):
            text = "extra shot"

        if text in GENERIC_SHOT_ALIASES:
            if isinstance(item, str):
                item = self.lookup(item)
            key = "matcha_shot" if item is not None and "matcha_shot" in item.modifiers else "espresso_shot"
            return key, max(count, 1)

        key = self._modifier_aliases.get(text)
        if key is None and text.endswith(" syrup"):
            key = self._modifier_aliases.get(text[: -len(" syrup")])
        if key is not None:
            return key, max(count, 1)
        return text, max(count, 1)

    def modifier_key_for_label(self, label: str) -> str | None:
        return self._modifier_aliases.get(label.strip().lower())

    @staticmethod
    def classify_raw(raw: str) -> str:
        """
        Which field an unrecognized word was aimed at.

        Returns "size", "temperature", "milk" or "modifier".
        """
        text = normalize_name(raw)
        if text in UNSUPPORTED_SIZES or text in SIZE_SYNONYMS or text.endswith(" size"):
            return "size"
        if text in UNSUPPORTED_TEMPERATURES or text in TEMPERATURE_SYNONYMS:
            return "temperature"
        if text in UNSUPPORTED_MILKS or text in MILK_SYNONYMS or text.endswith(" milk"):
            return "milk"
        return "modifier"

    @staticmethod
    def is_warming_request(raw: str | None) -> bool:
        return bool(raw) and normalize_name(raw) in WARMING_WORDS

    # -------------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------------

    def price_of(
        self,
        item: MenuItem,
        size: str | None = None,
        milk: str | None = None,
        modifiers: Mapping[str, int] | None = None,
    ) -> Decimal:
        """Unit price: base for the size plus milk and modifier surcharges."""
        price = item.base_price(size)
        if milk and not item.forbids_milk:
            price += MILK_SURCHARGES.get(milk, Decimal("0.00"))
        for key, count in (modifiers or {}).items():
            mod = MODIFIERS.get(key)
            if mod is not None:
                price += mod.surcharge * count
        return price


_default_catalog: MenuCatalog | None = None


def get_catalog() -> MenuCatalog:
    """Return the process-wide catalog, built on first use."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = MenuCatalog()
    return _default_catalog
