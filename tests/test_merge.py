"""
Tests for the cart merge resolver.
"""
import pytest

from barista_bot.engine import (
    CartMergeResolver,
    LineNotFound,
    ProposedUpdate,
    TargetRef,
    UnattachableModifier,
    UnknownItem,
    UpdateAction,
)


@pytest.fixture
def resolver(catalog):
    return CartMergeResolver(catalog)


def add(item, **kwargs):
    return ProposedUpdate(action=UpdateAction.ADD, item=item, **kwargs)


def set_implicit(**kwargs):
    return ProposedUpdate(action=UpdateAction.SET, target=TargetRef.IMPLICIT, **kwargs)


class TestAdd:
    """New lines."""

    def test_add_to_empty_cart(self, resolver):
        """Test that an added item becomes a bare line with quantity 1."""
        result = resolver.merge((), [add("latte")], "can I get a latte")
        assert len(result.cart) == 1
        line = result.cart[0]
        assert line.item_name == "Latte"
        assert line.quantity == 1
        assert (line.size, line.temperature, line.milk) == (None, None, None)
        assert result.mutated

    def test_stated_quantity_kept(self, resolver):
        """Test that "two lattes" keeps quantity 2."""
        result = resolver.merge((), [add("lattes", quantity=2)], "two lattes please")
        assert result.cart[0].quantity == 2

    def test_unstated_quantity_dropped(self, resolver):
        """Test that a quantity the customer never said becomes 1."""
        result = resolver.merge((), [add("latte", quantity=3)], "a latte please")
        assert result.cart[0].quantity == 1

    def test_attributes_on_new_line(self, resolver):
        """Test that size, temperature and milk land on the new line."""
        result = resolver.merge(
            (), [add("latte", size="large", temperature="iced", milk="oat milk")], "large iced oat latte"
        )
        line = result.cart[0]
        assert (line.size, line.temperature, line.milk) == ("large", "iced", "oat")

    def test_unknown_item(self, resolver):
        """Test that an unknown item is an error and the cart is unchanged."""
        result = resolver.merge((), [add("cappuccino")], "a cappuccino")
        assert result.cart == ()
        assert isinstance(result.errors[0], UnknownItem)
        assert not result.errors[0].ambiguous
        assert result.provisional == []

    def test_ambiguous_item_is_provisional(self, resolver):
        """Test that "croissant" is not added but yields a provisional line."""
        result = resolver.merge((), [add("croissant", modifiers=["warmed"])], "a warmed croissant")
        assert result.cart == ()
        assert result.errors[0].candidates == ["Plain Croissant", "Chocolate Croissant"]
        assert result.provisional[0].item_name == "Plain Croissant"
        assert result.provisional[0].modifiers == {"warmed": 1}
        assert not result.mutated

    def test_short_answer_resolved_from_question(self, resolver):
        """Test that "plain" after a croissant question adds a Plain Croissant."""
        result = resolver.merge(
            (), [add("plain")], "plain",
            last_assistant="Would you like a Plain Croissant or a Chocolate Croissant?",
        )
        assert result.cart[0].item_name == "Plain Croissant"

    def test_add_without_item_is_an_attribute(self, resolver, make_line):
        """Test that an add with no item sets the attribute on the cart."""
        cart = (make_line("Latte", size="small", temperature="hot"),)
        result = resolver.merge(cart, [ProposedUpdate(milk="oat")], "oat")
        assert len(result.cart) == 1
        assert result.cart[0].milk == "oat"

    def test_previous_cart_not_mutated(self, resolver, make_line):
        """Test that merge returns a new cart and leaves its input alone."""
        cart = (make_line("Latte"),)
        resolver.merge(cart, [add("mocha")], "and a mocha")
        assert len(cart) == 1


class TestRawWords:
    """Sizes, temperatures and milks we do not serve are kept raw."""

    def test_unsupported_temperature(self, resolver):
        """Test that "lukewarm" becomes a raw modifier."""
        line = resolver.merge((), [add("latte", temperature="lukewarm")], "lukewarm latte").cart[0]
        assert line.temperature is None
        assert line.modifiers == {"lukewarm": 1}

    def test_unsupported_milk(self, resolver):
        """Test that "soy" is kept as "soy milk"."""
        line = resolver.merge((), [add("latte", milk="soy")], "latte with soy").cart[0]
        assert line.milk is None
        assert line.modifiers == {"soy milk": 1}

    def test_unsupported_size(self, resolver):
        """Test that "medium" is kept raw."""
        line = resolver.merge((), [add("mocha", size="medium")], "medium mocha").cart[0]
        assert line.size is None
        assert line.modifiers == {"medium": 1}

    def test_conflicting_temperatures_last_wins(self, resolver):
        """Test that the temperature said last is kept."""
        update = add("latte", temperature="hot", modifiers=["iced"])
        line = resolver.merge((), [update], "a hot latte, no wait, iced").cart[0]
        assert line.temperature == "iced"
        assert line.modifiers == {}

    def test_ice_level_is_not_a_temperature(self, resolver):
        """Test that "less ice" does not count as the last temperature word."""
        update = add("latte", temperature="iced", modifiers=["hot", "less ice"])
        line = resolver.merge((), [update], "hot latte, actually iced, less ice").cart[0]
        assert line.temperature == "iced"
        assert line.modifiers == {"less_ice": 1}

    def test_temperature_in_size_field(self, resolver):
        """Test that "iced" proposed as a size becomes the temperature."""
        line = resolver.merge((), [add("latte", size="iced")], "an iced latte").cart[0]
        assert line.temperature == "iced"
        assert line.size is None
        assert line.modifiers == {}

    def test_counted_temperature_modifier(self, resolver):
        """Test that "2 hot" among the modifiers is a temperature, not an add-on."""
        line = resolver.merge((), [add("latte", modifiers=["2 hot"])], "a hot latte").cart[0]
        assert line.temperature == "hot"
        assert line.modifiers == {}


class TestImplicitTarget:
    """Attributes without a named item."""

    def test_fills_missing_axes(self, resolver, make_line):
        """Test that "small and hot" lands on the latte missing them."""
        cart = (make_line("Latte"),)
        result = resolver.merge(cart, [set_implicit(size="small", temperature="hot")], "small and hot")
        assert result.cart[0].size == "small"
        assert result.cart[0].temperature == "hot"
        assert result.updated == [result.cart[0]]

    def test_most_recent_line_missing_the_axis(self, resolver, make_line):
        """Test that the size goes to the drink still missing one."""
        cart = (make_line("Latte"), make_line("Mocha", size="small"))
        result = resolver.merge(cart, [set_implicit(size="large")], "large")
        assert result.cart[0].size == "large"
        assert result.cart[1].size == "small"

    def test_pastries_are_skipped(self, resolver, make_line):
        """Test that a size never lands on a pastry."""
        cart = (make_line("Latte"), make_line("Banana Bread"))
        result = resolver.merge(cart, [set_implicit(size="small")], "small")
        assert result.cart[0].size == "small"
        assert result.cart[1].size is None

    def test_no_drink_to_attach(self, resolver, make_line):
        """Test that a size with only pastries in the cart is unattachable."""
        cart = (make_line("Banana Bread"),)
        result = resolver.merge(cart, [set_implicit(size="large")], "large")
        assert result.cart == cart
        assert isinstance(result.errors[0], UnattachableModifier)
        assert result.errors[0].attributes == ["large"]

    def test_empty_cart(self, resolver):
        """Test that attributes on an empty cart are unattachable."""
        result = resolver.merge((), [set_implicit(milk="oat")], "oat milk")
        assert isinstance(result.errors[0], UnattachableModifier)

    def test_set_axis_needs_a_correction_cue(self, resolver, make_line):
        """Test that an already-sized drink keeps its size without a cue."""
        cart = (make_line("Latte", size="small"),)
        result = resolver.merge(cart, [set_implicit(size="large")], "large")
        assert result.cart[0].size == "small"
        assert isinstance(result.errors[0], UnattachableModifier)

    def test_correction_cue_overrides(self, resolver, make_line):
        """Test that "actually make it large" resizes the last drink."""
        cart = (make_line("Latte", size="small", temperature="hot", milk="whole"),)
        result = resolver.merge(cart, [set_implicit(size="large")], "actually make it large")
        assert result.cart[0].size == "large"

    def test_add_ons_go_on_last_drink(self, resolver, make_line):
        """Test that a syrup goes on the last drink, not a later pastry."""
        cart = (make_line("Americano"), make_line("Mocha"), make_line("Plain Croissant"))
        result = resolver.merge(cart, [set_implicit(modifiers=["caramel"])], "with caramel")
        assert result.cart[1].modifiers == {"caramel_syrup": 1}
        assert result.cart[0].modifiers == {}

    def test_add_ons_accumulate(self, resolver, make_line):
        """Test that another shot adds to the existing count."""
        cart = (make_line("Latte", modifiers={"espresso_shot": 1}),)
        result = resolver.merge(cart, [set_implicit(modifiers=["extra shot"])], "add another shot")
        assert result.cart[0].modifiers == {"espresso_shot": 2}

    def test_add_ons_overwritten_on_correction(self, resolver, make_line):
        """Test that a correction cue replaces the count instead of adding."""
        cart = (make_line("Latte", modifiers={"espresso_shot": 2}),)
        result = resolver.merge(cart, [set_implicit(modifiers=["one shot"])], "actually just one shot")
        assert result.cart[0].modifiers == {"espresso_shot": 1}

    def test_exclusive_levels_replace(self, resolver, make_line):
        """Test that a new sweetness level replaces the old one."""
        cart = (make_line("Black Tea", modifiers={"no_sugar": 1}),)
        result = resolver.merge(cart, [set_implicit(modifiers=["extra sugar"])], "extra sugar")
        assert result.cart[0].modifiers == {"extra_sugar": 1}

    def test_quantity_on_last_line(self, resolver, make_line):
        """Test that "make it two" sets the last line's quantity."""
        cart = (make_line("Latte"),)
        result = resolver.merge(cart, [set_implicit(quantity=2)], "make it two")
        assert result.cart[0].quantity == 2


class TestExplicitSet:
    """Updates naming their item."""

    def test_named_line_is_updated(self, resolver, make_line):
        """Test that a set naming the latte updates it and not the cookie."""
        cart = (make_line("Latte", size="small"), make_line("Chocolate Chip Cookie"))
        update = ProposedUpdate(action=UpdateAction.SET, target=TargetRef.EXPLICIT,
                                target_item="latte", size="large")
        result = resolver.merge(cart, [update], "make the latte large")
        assert result.cart[0].size == "large"

    def test_named_line_missing(self, resolver, make_line):
        """Test that a set naming an item not in the cart is LineNotFound."""
        cart = (make_line("Latte"),)
        update = ProposedUpdate(action=UpdateAction.SET, target=TargetRef.EXPLICIT,
                                target_item="mocha", size="large")
        result = resolver.merge(cart, [update], "make the mocha large")
        assert isinstance(result.errors[0], LineNotFound)
        assert result.cart == cart

    def test_set_new_item_with_cue_swaps_last_line(self, resolver, make_line):
        """Test that "actually a mocha" swaps the latte for a mocha."""
        cart = (make_line("Latte", size="large"),)
        update = ProposedUpdate(action=UpdateAction.SET, item="mocha")
        result = resolver.merge(cart, [update], "actually a mocha")
        assert [line.item_name for line in result.cart] == ["Mocha"]
        assert result.cart[0].size == "large"

    def test_set_new_item_without_cue_adds(self, resolver, make_line):
        """Test that a set for an item not yet ordered adds it."""
        cart = (make_line("Latte"),)
        update = ProposedUpdate(action=UpdateAction.SET, item="mocha")
        result = resolver.merge(cart, [update], "and a mocha")
        assert [line.item_name for line in result.cart] == ["Latte", "Mocha"]


class TestWarmingOrderedPastry:
    """Heating requests for a pastry already in the cart."""

    def test_add_does_not_duplicate(self, resolver, make_line):
        """Test that "warm up the plain croissant" leaves one croissant."""
        cart = (make_line("Plain Croissant"),)
        result = resolver.merge(cart, [add("plain croissant", temperature="warm up")],
                                "can you warm up the plain croissant")
        assert result.cart == cart
        assert not result.mutated
        assert result.provisional[0].item_name == "Plain Croissant"
        assert result.provisional[0].modifiers == {"warm up": 1}

    def test_explicit_set_does_not_touch_the_line(self, resolver, make_line):
        """Test that a set asking for a hot banana bread changes nothing."""
        cart = (make_line("Latte"), make_line("Banana Bread"))
        update = ProposedUpdate(action=UpdateAction.SET, target=TargetRef.EXPLICIT,
                                target_item="banana bread", temperature="hot")
        result = resolver.merge(cart, [update], "make the banana bread hot")
        assert result.cart == cart
        assert result.provisional[0].temperature == "hot"

    def test_warm_pastry_not_yet_ordered_is_added(self, resolver):
        """Test that a first order for a warmed pastry still adds it."""
        result = resolver.merge((), [add("banana bread", temperature="warmed")], "a warmed banana bread")
        assert [line.item_name for line in result.cart] == ["Banana Bread"]


class TestRemove:
    """Removing lines."""

    def test_remove_named_item(self, resolver, make_line):
        """Test that "no cookie" removes the cookie line."""
        cart = (make_line("Latte"), make_line("Chocolate Chip Cookie"))
        update = ProposedUpdate(action=UpdateAction.REMOVE, target=TargetRef.EXPLICIT, target_item="cookie")
        result = resolver.merge(cart, [update], "remove the cookie")
        assert [line.item_name for line in result.cart] == ["Latte"]
        assert result.removed[0].item_name == "Chocolate Chip Cookie"

    def test_remove_missing_item(self, resolver, make_line):
        """Test that removing an item not in the cart is LineNotFound."""
        cart = (make_line("Latte"),)
        update = ProposedUpdate(action=UpdateAction.REMOVE, target=TargetRef.EXPLICIT, target_item="mocha")
        result = resolver.merge(cart, [update], "remove the mocha")
        assert result.cart == cart
        assert isinstance(result.errors[0], LineNotFound)

    def test_remove_part_of_a_line(self, resolver, make_line):
        """Test that removing two of three cookies leaves one."""
        cart = (make_line("Chocolate Chip Cookie", quantity=3),)
        update = ProposedUpdate(action=UpdateAction.REMOVE, target=TargetRef.EXPLICIT,
                                target_item="cookies", quantity=2)
        result = resolver.merge(cart, [update], "remove two cookies")
        assert result.cart[0].quantity == 1

    def test_remove_generic_name(self, resolver, make_line):
        """Test that "the croissant" removes the only croissant in the cart."""
        cart = (make_line("Latte"), make_line("Chocolate Croissant"))
        update = ProposedUpdate(action=UpdateAction.REMOVE, target=TargetRef.EXPLICIT, target_item="croissant")
        result = resolver.merge(cart, [update], "remove the croissant")
        assert [line.item_name for line in result.cart] == ["Latte"]

    def test_remove_implicit_takes_last_line(self, resolver, make_line):
        """Test that "never mind that" removes the last line."""
        cart = (make_line("Latte"), make_line("Banana Bread"))
        update = ProposedUpdate(action=UpdateAction.REMOVE, target=TargetRef.IMPLICIT)
        result = resolver.merge(cart, [update], "never mind that")
        assert [line.item_name for line in result.cart] == ["Latte"]

    def test_remove_from_empty_cart(self, resolver):
        """Test that removing from an empty cart is LineNotFound."""
        update = ProposedUpdate(action=UpdateAction.REMOVE, target=TargetRef.IMPLICIT)
        result = resolver.merge((), [update], "remove that")
        assert isinstance(result.errors[0], LineNotFound)


class TestReplace:
    """Swapping one item for another."""

    def test_compatible_attributes_carry_over(self, resolver, make_line):
        """Test that a latte swapped for a mocha keeps size, temperature, milk and shots."""
        cart = (make_line("Latte", size="large", temperature="hot", milk="oat",
                          modifiers={"espresso_shot": 1}),)
        update = ProposedUpdate(action=UpdateAction.REPLACE, target=TargetRef.IMPLICIT, item="mocha")
        result = resolver.merge(cart, [update], "switch it to a mocha")
        line = result.cart[0]
        assert line.item_name == "Mocha"
        assert (line.size, line.temperature, line.milk) == ("large", "hot", "oat")
        assert line.modifiers == {"espresso_shot": 1}
        old, new = result.replaced[0]
        assert old.item_name == "Latte"
        assert new == line

    def test_incompatible_attributes_dropped(self, resolver, make_line):
        """Test that milk and espresso do not carry onto a black tea."""
        cart = (make_line("Latte", size="small", temperature="hot", milk="whole",
                          modifiers={"espresso_shot": 1, "caramel_syrup": 1}),)
        update = ProposedUpdate(action=UpdateAction.REPLACE, target=TargetRef.IMPLICIT, item="black tea")
        line = resolver.merge(cart, [update], "make that a black tea instead").cart[0]
        assert line.item_name == "Black Tea"
        assert line.milk is None
        assert line.modifiers == {"caramel_syrup": 1}
        assert line.size == "small"

    def test_illegal_temperature_dropped(self, resolver, make_line):
        """Test that a hot latte swapped for cold brew loses its temperature."""
        cart = (make_line("Latte", temperature="hot"),)
        update = ProposedUpdate(action=UpdateAction.REPLACE, target=TargetRef.IMPLICIT, item="cold brew")
        line = resolver.merge(cart, [update], "actually a cold brew").cart[0]
        assert line.item_name == "Cold Brew"
        assert line.temperature is None

    def test_named_target(self, resolver, make_line):
        """Test that the named line is the one replaced."""
        cart = (make_line("Latte"), make_line("Chocolate Chip Cookie"))
        update = ProposedUpdate(action=UpdateAction.REPLACE, target=TargetRef.EXPLICIT,
                                target_item="cookie", item="banana bread")
        result = resolver.merge(cart, [update], "swap the cookie for banana bread")
        assert [line.item_name for line in result.cart] == ["Latte", "Banana Bread"]

    def test_replace_on_empty_cart_adds(self, resolver):
        """Test that a replace with nothing to replace orders the item."""
        update = ProposedUpdate(action=UpdateAction.REPLACE, target=TargetRef.IMPLICIT, item="mocha")
        result = resolver.merge((), [update], "actually a mocha")
        assert [line.item_name for line in result.cart] == ["Mocha"]


class TestPartialFailure:
    """Each update stands on its own."""

    def test_good_updates_survive_a_bad_one(self, resolver):
        """Test that an unknown item does not stop the latte being added."""
        result = resolver.merge((), [add("cappuccino"), add("latte")], "a cappuccino and a latte")
        assert [line.item_name for line in result.cart] == ["Latte"]
        assert len(result.errors) == 1


class TestGuardQuantity:
    """Quantities must be said out loud."""

    def test_none_and_one(self, resolver, catalog):
        """Test that no quantity stays None and 1 passes."""
        latte = catalog.lookup("Latte")
        assert resolver.guard_quantity(None, "latte", latte, "a latte") is None
        assert resolver.guard_quantity(1, "latte", latte, "a latte") == 1

    def test_number_near_the_item(self, resolver, catalog):
        """Test that a number is matched to the item it precedes."""
        utterance = "a latte and two cookies"
        assert resolver.guard_quantity(2, "latte", catalog.lookup("Latte"), utterance) == 1
        assert resolver.guard_quantity(2, "cookies", catalog.lookup("Chocolate Chip Cookie"), utterance) == 2

    def test_number_words(self, resolver, catalog):
        """Test "a couple of" as 2."""
        mocha = catalog.lookup("Mocha")
        assert resolver.guard_quantity(2, "mochas", mocha, "a couple of mochas") == 2

    def test_no_utterance_trusts_the_proposal(self, resolver, catalog):
        """Test that without an utterance the proposed quantity is kept."""
        assert resolver.guard_quantity(3, "latte", catalog.lookup("Latte"), None) == 3
