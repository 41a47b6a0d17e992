"""
Cart display strings and stored cart state.

Display format, one line per cart entry:

    1x Latte (Large) (Iced) (Oat milk) (Extra espresso shot x2)

Lines are comma-joined into the cart string shown to the customer and written
to Order.items for the kitchen. The structured cart lives in Order.cart_state
as a JSON list; older rows only carry the display string, which parse_cart()
reads back.
"""

import logging
import re
from typing import Any, Iterable

from pydantic import ValidationError

from .catalog import MenuCatalog, MODIFIERS, get_catalog
from .schemas import Cart, CartLine

logger = logging.getLogger(__name__)

_LINE_PATTERN = re.compile(r"^\s*(\d+)\s*x\s+([^()]+?)\s*((?:\([^)]*\)\s*)*)$", re.IGNORECASE)
_PAREN_PATTERN = re.compile(r"\(([^)]*)\)")
_LINE_SPLIT = re.compile(r",\s*(?=\d+\s*x\s)", re.IGNORECASE)
_COUNT_SUFFIX = re.compile(r"^(.+?)\s+x(\d+)$", re.IGNORECASE)


def format_modifier(key: str, count: int) -> str:
    mod = MODIFIERS.get(key)
    label = mod.label if mod else key
    return f"{label} x{count}" if count > 1 else label


def format_line(line: CartLine) -> str:
    """Render a cart line as the customer-facing display string."""
    parts = [f"{line.quantity}x {line.item_name}"]
    if line.size:
        parts.append(f"({line.size.capitalize()})")
    if line.temperature:
        parts.append(f"({line.temperature.capitalize()})")
    if line.milk:
        parts.append(f"({line.milk.capitalize()} milk)")
    for key, count in line.modifiers.items():
        parts.append(f"({format_modifier(key, count)})")
    return " ".join(parts)


def format_cart(cart: Iterable[CartLine]) -> str:
    return ", ".join(format_line(line) for line in cart)


def parse_line(text: str, catalog: MenuCatalog | None = None) -> CartLine | None:
    """
    Read one display string back into a CartLine.

    Returns None when the text does not look like a cart line or names an
    item that is not on the menu.
    """
    catalog = catalog or get_catalog()
    match = _LINE_PATTERN.match(text)
    if not match:
        return None
    quantity = int(match.group(1))
    item = catalog.lookup(match.group(2))
    if item is None or quantity < 1:
        return None

    size = temperature = milk = None
    modifiers: dict[str, int] = {}
    for part in _PAREN_PATTERN.findall(match.group(3) or ""):
        part = part.strip()
        lowered = part.lower()
        if catalog.normalize_size(lowered):
            size = catalog.normalize_size(lowered)
        elif catalog.normalize_temperature(lowered):
            temperature = catalog.normalize_temperature(lowered)
        elif lowered.endswith(" milk") and catalog.normalize_milk(lowered):
            milk = catalog.normalize_milk(lowered)
        else:
            count = 1
            counted = _COUNT_SUFFIX.match(part)
            if counted:
                part, count = counted.group(1), int(counted.group(2))
            key = catalog.modifier_key_for_label(part) or part.lower()
            modifiers[key] = modifiers.get(key, 0) + count

    return CartLine(
        item_name=item.name,
        quantity=quantity,
        size=size,
        temperature=temperature,
        milk=milk,
        modifiers=modifiers,
    )


def parse_cart(text: str | None, catalog: MenuCatalog | None = None) -> Cart:
    """Parse a comma-joined display string. Unreadable entries are skipped."""
    if not text or not text.strip():
        return ()
    lines = []
    for chunk in _LINE_SPLIT.split(text.strip()):
        line = parse_line(chunk, catalog)
        if line is None:
            logger.warning("Skipping unreadable cart entry: %r", chunk)
            continue
        lines.append(line)
    return tuple(lines)


def cart_to_state(cart: Iterable[CartLine]) -> list[dict[str, Any]]:
    """JSON-safe list of line dicts for Order.cart_state."""
    return [line.model_dump(mode="json") for line in cart]


def cart_from_state(state: Any, catalog: MenuCatalog | None = None) -> Cart:
    """
    Load a persisted cart.

    Accepts the JSON list written by cart_to_state() or a legacy display
    string. Entries that no longer validate are dropped with a warning.
    """
    if state is None:
        return ()
    if isinstance(state, str):
        return parse_cart(state, catalog)
    lines = []
    for entry in state:
        try:
            lines.append(CartLine.model_validate(entry))
        except ValidationError as e:
            logger.warning("Dropping invalid stored cart line %r: %s", entry, e)
    return tuple(lines)
