"""
Cart Merge Resolver.

Applies the updates proposed for a turn to the previous cart and returns a
new cart. The resolver decides which line an update lands on; the validator
decides whether the resulting line is legal.

Targeting rules:
    - new: append a line. Quantity is 1 unless the customer actually said a
      number of two or more for that item.
    - implicit: the most recently added line that is missing the attribute
      being supplied. With a correction cue ("actually", "make it",
      "switch") the last drink takes the attribute even if already set.
      Add-ons (shots, syrups, sugar, ice) go on the last drink.
    - explicit: the last line for the named item.

Each update is applied independently. An update that cannot be applied is
recorded as an error and leaves the cart as it was; the other updates in the
same turn still go through.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .catalog import EXCLUSIVE_KINDS, MenuCatalog, MenuItem, get_catalog, normalize_name
from .errors import LineNotFound, OrderEngineError, UnattachableModifier, UnknownItem
from .patterns import has_correction_cue, last_temperature_marker, utterance_numbers
from .schemas import Cart, CartLine, ProposedUpdate, TargetRef, UpdateAction

logger = logging.getLogger(__name__)

AXES = ("size", "temperature", "milk")


@dataclass
class Attributes:
    """Normalized attributes carried by one update."""
    size: str | None = None
    temperature: str | None = None
    milk: str | None = None
    modifiers: dict[str, int] = field(default_factory=dict)

    @property
    def axes(self) -> list[str]:
        return [axis for axis in AXES if getattr(self, axis)]

    def is_empty(self) -> bool:
        return not self.axes and not self.modifiers

    def describe(self) -> list[str]:
        return [getattr(self, axis) for axis in self.axes] + list(self.modifiers)


@dataclass
class MergeResult:
    """The merged cart plus what happened to it, for the response."""
    cart: Cart
    errors: list[OrderEngineError] = field(default_factory=list)
    added: list[CartLine] = field(default_factory=list)
    removed: list[CartLine] = field(default_factory=list)
    replaced: list[tuple[CartLine, CartLine]] = field(default_factory=list)
    updated: list[CartLine] = field(default_factory=list)
    # Lines for ambiguous items, validated only to surface guardrails
    provisional: list[CartLine] = field(default_factory=list)

    @property
    def mutated(self) -> bool:
        return bool(self.added or self.removed or self.replaced or self.updated)


class CartMergeResolver:
    """
    Merges proposed updates into a cart snapshot.

    Args:
        catalog: Menu used to resolve item names and modifiers.
    """

    def __init__(self, catalog: MenuCatalog | None = None):
        self.catalog = catalog or get_catalog()

    def merge(
        self,
        cart: Iterable[CartLine],
        updates: Iterable[ProposedUpdate],
        utterance: str | None = None,
        last_assistant: str | None = None,
    ) -> MergeResult:
        """
        Apply updates in order.

        Args:
            cart: The previous cart.
            updates: Updates proposed for this turn.
            utterance: What the customer said, used to check quantities,
                temperature order and correction cues. None trusts the proposal.
            last_assistant: The previous assistant turn, used to resolve short
                answers to a disambiguation question.

        Returns:
            MergeResult with the new cart and any per-update errors.
        """
        lines = list(cart)
        result = MergeResult(cart=tuple(lines))
        for update in updates:
            try:
                self._apply(lines, update, utterance, last_assistant, result)
            except OrderEngineError as e:
                logger.info("Update %s not applied: %s", update.action.value, e)
                result.errors.append(e)
        result.cart = tuple(lines)
        return result

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _apply(self, lines, update, utterance, last_assistant, result) -> None:
        if update.action == UpdateAction.REMOVE:
            self._remove(lines, update, utterance, last_assistant, result)
        elif update.action == UpdateAction.REPLACE:
            self._replace(lines, update, utterance, last_assistant, result)
        elif update.action == UpdateAction.SET:
            self._set(lines, update, utterance, last_assistant, result)
        elif update.item:
            self._add(lines, update, utterance, last_assistant, result)
        else:
            # An "add" with no item is an attribute for a line already ordered
            self._set(lines, update.model_copy(update={"target": TargetRef.IMPLICIT}),
                      utterance, last_assistant, result)

    def _add(self, lines, update, utterance, last_assistant, result) -> None:
        try:
            item = self.resolve_item(update.item, last_assistant)
        except UnknownItem as e:
            if e.ambiguous:
                stand_in = self.catalog.lookup(e.candidates[0])
                attrs = self.attributes(update, stand_in, utterance)
                result.provisional.append(self._new_line(stand_in, attrs, 1))
            raise
        attrs = self.attributes(update, item, utterance)
        if self._warms_ordered_pastry(lines, item, attrs):
            # "warm up the croissant" asks about the one already ordered
            result.provisional.append(self._new_line(item, attrs, 1))
            return
        quantity = self.guard_quantity(update.quantity, update.item, item, utterance) or 1
        line = self._new_line(item, attrs, quantity)
        lines.append(line)
        result.added.append(line)

    def _set(self, lines, update, utterance, last_assistant, result) -> None:
        if update.target == TargetRef.EXPLICIT and (update.target_item or update.item):
            index = self._find_line(lines, update.target_item or update.item, last_assistant)
        elif update.item:
            # A named item on a set: update that line if it is in the cart,
            # swap the last line on a correction cue, otherwise order it.
            item = self.resolve_item(update.item, last_assistant)
            index = self._last_index(lines, lambda line: line.item_name == item.name)
            if index is None:
                if lines and has_correction_cue(utterance):
                    self._replace(lines, update, utterance, last_assistant, result)
                else:
                    self._add(lines, update, utterance, last_assistant, result)
                return
        else:
            index = self._implicit_target(lines, update, utterance)

        line = lines[index]
        item = self.catalog.lookup(line.item_name)
        attrs = self.attributes(update, item, utterance)
        if self._warms_ordered_pastry(lines, item, attrs):
            result.provisional.append(self._new_line(item, attrs, 1))
            return
        quantity = self.guard_quantity(update.quantity, line.item_name, item, utterance)
        if attrs.is_empty() and quantity is None:
            return
        updated = self._apply_attributes(line, attrs, utterance)
        if quantity is not None:
            updated = updated.with_changes(quantity=quantity)
        if updated != line:
            lines[index] = updated
            result.updated.append(updated)

    def _remove(self, lines, update, utterance, last_assistant, result) -> None:
        name = update.target_item or update.item
        if name:
            index = self._find_line(lines, name, last_assistant)
        elif lines:
            index = len(lines) - 1
        else:
            raise LineNotFound("that")

        line = lines[index]
        count = self.guard_quantity(update.quantity, name, self.catalog.lookup(line.item_name), utterance)
        if count is not None and count < line.quantity:
            reduced = line.with_changes(quantity=line.quantity - count)
            lines[index] = reduced
            result.updated.append(reduced)
            return
        del lines[index]
        result.removed.append(line)

    def _replace(self, lines, update, utterance, last_assistant, result) -> None:
        if not lines:
            self._add(lines, update, utterance, last_assistant, result)
            return
        if update.target_item:
            index = self._find_line(lines, update.target_item, last_assistant)
        else:
            index = len(lines) - 1

        new_item = self.resolve_item(update.item, last_assistant)
        old = lines[index]
        temperature = old.temperature if old.temperature in new_item.temperatures else None
        carried = CartLine(
            item_name=new_item.name,
            quantity=old.quantity,
            size=old.size if new_item.has_size_axis else None,
            temperature=temperature,
            milk=None if new_item.forbids_milk else old.milk,
            modifiers={
                key: count for key, count in old.modifiers.items()
                if self.catalog.allows_modifier(new_item, key, temperature)
            },
        )
        attrs = self.attributes(update, new_item, utterance)
        replacement = self._apply_attributes(carried, attrs, utterance)
        quantity = self.guard_quantity(update.quantity, update.item, new_item, utterance)
        if quantity is not None:
            replacement = replacement.with_changes(quantity=quantity)
        lines[index] = replacement
        result.replaced.append((old, replacement))

    # -------------------------------------------------------------------------
    # Targeting
    # -------------------------------------------------------------------------

    def resolve_item(self, name: str | None, last_assistant: str | None = None) -> MenuItem:
        """
        Resolve an item name, using the last question for short answers.

        Raises:
            UnknownItem: The name is not on the menu, or names several items.
        """
        item = self.catalog.lookup(name)
        if item is not None:
            return item
        candidates = self.catalog.candidates(name)
        if not candidates:
            contextual = self.catalog.resolve_from_context(name, last_assistant)
            if contextual is not None:
                return contextual
        raise UnknownItem(normalize_name(name or ""), candidates)

    def _find_line(self, lines, name: str, last_assistant: str | None) -> int:
        item = self.catalog.lookup(name) or self.catalog.resolve_from_context(name, last_assistant)
        if item is not None:
            names = {item.name}
        else:
            # "remove the croissant" with one croissant in the cart
            names = set(self.catalog.candidates(name))
        index = self._last_index(lines, lambda line: line.item_name in names)
        if index is None:
            raise LineNotFound(item.name if item else normalize_name(name))
        return index

    def _implicit_target(self, lines, update: ProposedUpdate, utterance: str | None) -> int:
        attrs = self.attributes(update, None, utterance)
        drinks = [i for i, line in enumerate(lines) if self._is_drink(line)]

        if drinks and not attrs.is_empty() and has_correction_cue(utterance):
            return drinks[-1]

        if attrs.axes:
            for index in reversed(drinks):
                if any(self.lacks(lines[index], axis) for axis in attrs.axes):
                    return index
            raise UnattachableModifier(attrs.describe())

        if attrs.modifiers:
            if drinks:
                return drinks[-1]
            raise UnattachableModifier(attrs.describe())

        if update.quantity is not None and lines:
            return len(lines) - 1
        raise UnattachableModifier(attrs.describe())

    def lacks(self, line: CartLine, axis: str) -> bool:
        """Whether a line has no value yet for an axis it can take."""
        item = self.catalog.lookup(line.item_name)
        if item is None or item.is_pastry:
            return False
        if axis == "size":
            return item.has_size_axis and line.size is None
        if axis == "temperature":
            return len(item.temperatures) > 1 and line.temperature is None
        if axis == "milk":
            return not item.forbids_milk and line.milk is None
        return False

    def _is_drink(self, line: CartLine) -> bool:
        item = self.catalog.lookup(line.item_name)
        return item is not None and item.is_drink

    @staticmethod
    def _last_index(lines, predicate) -> int | None:
        for index in range(len(lines) - 1, -1, -1):
            if predicate(lines[index]):
                return index
        return None

    # -------------------------------------------------------------------------
    # Attributes
    # -------------------------------------------------------------------------

    def attributes(self, update: ProposedUpdate, item: MenuItem | None, utterance: str | None) -> Attributes:
        """
        Normalize the attributes on an update.

        Words that name a size, temperature or milk we do not serve are kept
        as raw modifiers so the validator can reject them with a reason.
        Competing hot/iced markers resolve to the one said last.
        """
        attrs = Attributes()
        markers: list[str] = []

        def keep_raw(word: str, count: int = 1) -> None:
            key = normalize_name(word)
            # hot/iced never live among the modifiers, whichever field they came in on
            temperature = self.catalog.normalize_temperature(key)
            if temperature:
                markers.append(temperature)
                return
            attrs.modifiers[key] = attrs.modifiers.get(key, 0) + count

        if update.size:
            attrs.size = self.catalog.normalize_size(update.size)
            if attrs.size is None:
                keep_raw(update.size)
        if update.temperature:
            temperature = self.catalog.normalize_temperature(update.temperature)
            if temperature:
                markers.append(temperature)
            else:
                keep_raw(update.temperature)
        if update.milk:
            attrs.milk = self.catalog.normalize_milk(update.milk)
            if attrs.milk is None:
                raw = normalize_name(update.milk)
                keep_raw(raw if raw.endswith("milk") else f"{raw} milk")

        for word in update.modifiers:
            temperature = self.catalog.normalize_temperature(word)
            if temperature:
                markers.append(temperature)
                continue
            if attrs.size is None and self.catalog.normalize_size(word):
                attrs.size = self.catalog.normalize_size(word)
                continue
            if attrs.milk is None and self.catalog.normalize_milk(word):
                attrs.milk = self.catalog.normalize_milk(word)
                continue
            key, count = self.catalog.parse_modifier(word, item)
            mod = self.catalog.modifier(key)
            if mod is not None and mod.kind in EXCLUSIVE_KINDS:
                for other in [k for k in attrs.modifiers if self._kind(k) == mod.kind]:
                    del attrs.modifiers[other]
                attrs.modifiers[key] = 1
            else:
                keep_raw(key, count)

        if markers:
            if len(set(markers)) > 1:
                said_last = last_temperature_marker(utterance)
                attrs.temperature = said_last or markers[-1]
                logger.debug("Conflicting temperatures %s, keeping %s", markers, attrs.temperature)
            else:
                attrs.temperature = markers[0]
        return attrs

    def _apply_attributes(self, line: CartLine, attrs: Attributes, utterance: str | None) -> CartLine:
        changes = {}
        for axis in attrs.axes:
            changes[axis] = getattr(attrs, axis)
        if attrs.modifiers:
            overwrite = has_correction_cue(utterance)
            modifiers = dict(line.modifiers)
            for key, count in attrs.modifiers.items():
                mod = self.catalog.modifier(key)
                if mod is not None and mod.kind in EXCLUSIVE_KINDS:
                    for other in [k for k in modifiers if self._kind(k) == mod.kind]:
                        del modifiers[other]
                    modifiers[key] = 1
                elif overwrite:
                    modifiers[key] = count
                else:
                    modifiers[key] = modifiers.get(key, 0) + count
            changes["modifiers"] = modifiers
        return line.with_changes(**changes) if changes else line

    def _warms_ordered_pastry(self, lines, item: MenuItem | None, attrs: Attributes) -> bool:
        """Whether the update only asks to heat a pastry that is already in the cart."""
        if item is None or not item.is_pastry or attrs.size or attrs.milk:
            return False
        words = attrs.describe()
        if not words or not all(self.catalog.is_warming_request(w) for w in words):
            return False
        return any(line.item_name == item.name for line in lines)

    def _kind(self, key: str):
        mod = self.catalog.modifier(key)
        return mod.kind if mod else None

    def _new_line(self, item: MenuItem, attrs: Attributes, quantity: int) -> CartLine:
        return CartLine(
            item_name=item.name,
            quantity=quantity,
            size=attrs.size,
            temperature=attrs.temperature,
            milk=attrs.milk,
            modifiers=dict(attrs.modifiers),
        )

    # -------------------------------------------------------------------------
    # Quantity
    # -------------------------------------------------------------------------

    def guard_quantity(
        self,
        proposed: int | None,
        mention: str | None,
        item: MenuItem | None,
        utterance: str | None,
    ) -> int | None:
        """
        Keep a proposed quantity only if the customer said it.

        Quantities of two or more must appear as a numeral or number word
        near the item in the utterance; otherwise the line gets 1. A missing
        utterance means the proposal is trusted as-is.
        """
        if proposed is None:
            return None
        if proposed <= 1:
            return 1
        if utterance is None:
            return proposed
        if proposed in self._stated_numbers(mention, item, utterance):
            return proposed
        logger.info("Ignoring quantity %d not stated by the customer", proposed)
        return 1

    def _stated_numbers(self, mention: str | None, item: MenuItem | None, utterance: str) -> set[int]:
        text = utterance.lower()
        names = set()
        if mention:
            names.add(normalize_name(mention))
        if item is not None:
            names.update(alias for alias, name in self.catalog.aliases().items() if name == item.name)
        for name in sorted(names, key=len, reverse=True):
            position = text.find(name)
            if position >= 0:
                window = " ".join(text[:position].split()[-4:])
                return utterance_numbers(window)
        return utterance_numbers(text)
