"""
Modifier Validator.

Applies the menu's business rules to a cart line and returns the corrected line
together with a Correction record for every change. Rules run in a fixed order:

1. Temperature legality: an iced-only drink asked for hot is made iced; a
   drink with a single temperature gets it filled in silently.
2. Temperature mixing: hot/iced must never appear among the modifiers. The
   merge step resolves competing markers, so finding one here is a bug and
   raises CartInvariantError.
3. Pastry purity: pastries carry no size, temperature, milk or add-ons.
   Warming requests are refused separately from the other attributes.
4. Caps: extra shots per kind and syrup pumps (summed across flavours) are
   clamped to the configured maximum.
5. Unsupported modifiers: anything the item does not allow at its temperature
   is dropped (unknown sizes and temperatures, milk on plain teas, ice levels
   on hot drinks, syrups we do not stock).

Validated lines are fixed points: validating them again changes nothing.
"""

import logging
from typing import Iterable

from .catalog import EXCLUSIVE_KINDS, MenuCatalog, MenuItem, ModifierKind, get_catalog
from .errors import CartInvariantError
from .schemas import Cart, CartLine, Correction, ReasonCode, REASON_PRECEDENCE

logger = logging.getLogger(__name__)


def select_guardrail(corrections: Iterable[Correction]) -> Correction | None:
    """The single correction to tell the customer about this turn."""
    chosen = None
    for correction in corrections:
        if chosen is None or (
            REASON_PRECEDENCE.index(correction.reason) < REASON_PRECEDENCE.index(chosen.reason)
        ):
            chosen = correction
    return chosen


class ModifierValidator:
    """
    Corrects cart lines against the menu.

    Args:
        catalog: Menu to validate against. Defaults to the shared catalog.
    """

    def __init__(self, catalog: MenuCatalog | None = None):
        self.catalog = catalog or get_catalog()

    def validate_cart(self, cart: Iterable[CartLine]) -> tuple[Cart, list[Correction]]:
        """Validate every line. Lines for items no longer on the menu are dropped."""
        lines: list[CartLine] = []
        corrections: list[Correction] = []
        for line in cart:
            if self.catalog.lookup(line.item_name) is None:
                logger.warning("Dropping cart line for unknown item %r", line.item_name)
                continue
            fixed, line_corrections = self.validate_line(line, len(lines))
            lines.append(fixed)
            corrections.extend(line_corrections)
        return tuple(lines), corrections

    def validate_line(self, line: CartLine, index: int = 0) -> tuple[CartLine, list[Correction]]:
        """
        Validate a single line.

        Args:
            line: The line to check.
            index: Position of the line in the cart, recorded on corrections.

        Returns:
            The corrected line and the corrections applied to it.

        Raises:
            CartInvariantError: If a temperature leaked into the modifiers.
        """
        item = self.catalog.lookup(line.item_name)
        if item is None:
            raise CartInvariantError(f"Cart line for unknown item {line.item_name!r}")

        for key in line.modifiers:
            if self.catalog.normalize_temperature(key):
                raise CartInvariantError(
                    f"Temperature {key!r} stored as a modifier on {line.item_name}"
                )

        if item.is_pastry:
            return self._validate_pastry(line, item, index)
        return self._validate_drink(line, item, index)

    # -------------------------------------------------------------------------
    # Pastries
    # -------------------------------------------------------------------------

    def _validate_pastry(self, line: CartLine, item: MenuItem, index: int) -> tuple[CartLine, list[Correction]]:
        corrections: list[Correction] = []

        def record(field: str, value: str | None, reason: ReasonCode) -> None:
            corrections.append(Correction(
                line_index=index, item_name=item.name, field=field,
                from_value=value, to_value=None, reason=reason,
            ))

        if line.size:
            record("size", line.size, ReasonCode.PASTRY_MODIFIERS_STRIPPED)
        if line.temperature == "hot":
            record("temperature", "hot", ReasonCode.CANNOT_WARM_PASTRY)
        elif line.temperature:
            record("temperature", line.temperature, ReasonCode.PASTRY_MODIFIERS_STRIPPED)
        if line.milk:
            record("milk", line.milk, ReasonCode.PASTRY_MODIFIERS_STRIPPED)
        for key in line.modifiers:
            if self.catalog.is_warming_request(key):
                record("temperature", key, ReasonCode.CANNOT_WARM_PASTRY)
            else:
                record("modifiers", key, ReasonCode.PASTRY_MODIFIERS_STRIPPED)

        if not corrections:
            return line, corrections
        logger.debug("Stripped %d attribute(s) from %s", len(corrections), item.name)
        return line.with_changes(size=None, temperature=None, milk=None, modifiers={}), corrections

    # -------------------------------------------------------------------------
    # Drinks
    # -------------------------------------------------------------------------

    def _validate_drink(self, line: CartLine, item: MenuItem, index: int) -> tuple[CartLine, list[Correction]]:
        corrections: list[Correction] = []

        def record(field: str, from_value, to_value, reason: ReasonCode) -> None:
            corrections.append(Correction(
                line_index=index, item_name=item.name, field=field,
                from_value=None if from_value is None else str(from_value),
                to_value=None if to_value is None else str(to_value),
                reason=reason,
            ))

        # 1. Temperature legality
        temperature = line.temperature
        legal = self.catalog.legal_temperatures(item)
        if temperature and temperature not in legal:
            forced = legal[0]
            record("temperature", temperature, forced, ReasonCode.ICED_ONLY_ITEM)
            temperature = forced
        elif temperature is None and len(legal) == 1:
            temperature = legal[0]

        # Milk on a drink that never takes it
        milk = line.milk
        if milk and item.forbids_milk:
            record("milk", milk, None, ReasonCode.UNSUPPORTED_MODIFIER)
            milk = None

        # 5. Unsupported modifiers (before caps so caps only see legal add-ons)
        allowed: dict[str, int] = {}
        for key, count in line.modifiers.items():
            if self.catalog.allows_modifier(item, key, temperature):
                allowed[key] = allowed.get(key, 0) + max(count, 1)
                continue
            field = "modifier" if self.catalog.modifier(key) else self.catalog.classify_raw(key)
            record(field, key, None, ReasonCode.UNSUPPORTED_MODIFIER)

        # 4. Caps
        modifiers = self._apply_caps(allowed, item, record)

        fixed = line.with_changes(temperature=temperature, milk=milk, modifiers=modifiers)
        if corrections:
            logger.debug(
                "Corrected %s: %s", item.name,
                ", ".join(f"{c.field}={c.from_value}->{c.to_value} ({c.reason.value})" for c in corrections),
            )
        return fixed, corrections

    def _apply_caps(self, modifiers: dict[str, int], item: MenuItem, record) -> dict[str, int]:
        capped: dict[str, int] = {}

        # One sweetness level and one ice level; the latest request wins
        latest_exclusive = {}
        for key in modifiers:
            kind = self.catalog.modifier(key).kind
            if kind in EXCLUSIVE_KINDS:
                latest_exclusive[kind] = key

        syrup_budget = self.catalog.cap_for(ModifierKind.SYRUP)
        syrup_requested = sum(
            count for key, count in modifiers.items()
            if self.catalog.modifier(key).kind == ModifierKind.SYRUP
        )
        for key, count in modifiers.items():
            kind = self.catalog.modifier(key).kind
            if kind in EXCLUSIVE_KINDS:
                if latest_exclusive[kind] == key:
                    capped[key] = 1
            elif kind == ModifierKind.SHOT:
                cap = self.catalog.cap_for(kind)
                if count > cap:
                    record(key, count, cap, ReasonCode.MODIFIER_CAPPED)
                    count = cap
                if count > 0:
                    capped[key] = count
            elif kind == ModifierKind.SYRUP:
                granted = min(count, syrup_budget)
                syrup_budget -= granted
                if granted > 0:
                    capped[key] = granted
            else:
                capped[key] = count

        syrup_cap = self.catalog.cap_for(ModifierKind.SYRUP)
        if syrup_requested > syrup_cap:
            record("syrup", syrup_requested, syrup_cap, ReasonCode.MODIFIER_CAPPED)
        return capped
