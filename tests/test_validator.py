"""
Tests for the modifier validator and guardrail selection.
"""
import pytest

from barista_bot.engine import CartInvariantError, ModifierValidator, ReasonCode, select_guardrail
from barista_bot.engine.schemas import Correction


@pytest.fixture
def validator(catalog):
    return ModifierValidator(catalog)


class TestTemperatureRules:
    """Temperature legality on drinks."""

    def test_iced_only_item_asked_hot_is_made_iced(self, validator, make_line):
        """Test that a hot Frappuccino becomes iced with ICED_ONLY_ITEM."""
        fixed, corrections = validator.validate_line(make_line("Coffee Frappuccino", temperature="hot"))
        assert fixed.temperature == "iced"
        assert [c.reason for c in corrections] == [ReasonCode.ICED_ONLY_ITEM]
        assert corrections[0].from_value == "hot"
        assert corrections[0].to_value == "iced"

    def test_single_temperature_filled_silently(self, validator, make_line):
        """Test that Cold Brew gets iced without a correction."""
        fixed, corrections = validator.validate_line(make_line("Cold Brew"))
        assert fixed.temperature == "iced"
        assert corrections == []

    def test_temperature_in_modifiers_is_an_invariant_error(self, validator, make_line):
        """Test that hot/iced stored as a modifier raises CartInvariantError."""
        with pytest.raises(CartInvariantError):
            validator.validate_line(make_line("Latte", modifiers={"hot": 1}))

    def test_unsupported_temperature_word_is_dropped(self, validator, make_line):
        """Test that "lukewarm" is removed with UNSUPPORTED_MODIFIER."""
        fixed, corrections = validator.validate_line(make_line("Latte", modifiers={"lukewarm": 1}))
        assert fixed.temperature is None
        assert fixed.modifiers == {}
        assert corrections[0].reason == ReasonCode.UNSUPPORTED_MODIFIER
        assert corrections[0].field == "temperature"


class TestPastryRules:
    """Pastries are served as-is."""

    def test_drink_attributes_are_stripped(self, validator, make_line):
        """Test that size, milk and syrup are removed from a pastry."""
        fixed, corrections = validator.validate_line(
            make_line("Plain Croissant", size="large", milk="oat", modifiers={"caramel_syrup": 1})
        )
        assert fixed.size is None
        assert fixed.milk is None
        assert fixed.modifiers == {}
        assert {c.reason for c in corrections} == {ReasonCode.PASTRY_MODIFIERS_STRIPPED}

    def test_warming_is_refused(self, validator, make_line):
        """Test that warming a pastry yields CANNOT_WARM_PASTRY."""
        fixed, corrections = validator.validate_line(make_line("Chocolate Croissant", modifiers={"warmed": 1}))
        assert fixed.modifiers == {}
        assert [c.reason for c in corrections] == [ReasonCode.CANNOT_WARM_PASTRY]

    def test_hot_pastry_is_a_warming_request(self, validator, make_line):
        """Test that a hot temperature on a pastry is refused as warming."""
        fixed, corrections = validator.validate_line(make_line("Banana Bread", temperature="hot"))
        assert fixed.temperature is None
        assert corrections[0].reason == ReasonCode.CANNOT_WARM_PASTRY

    def test_plain_pastry_is_untouched(self, validator, make_line):
        """Test that a bare pastry has no corrections."""
        original = make_line("Chocolate Chip Cookie", quantity=2)
        fixed, corrections = validator.validate_line(original)
        assert fixed == original
        assert corrections == []


class TestUnsupportedModifiers:
    """Add-ons an item does not take."""

    def test_milk_on_plain_tea(self, validator, make_line):
        """Test that milk is removed from Black Tea."""
        fixed, corrections = validator.validate_line(make_line("Black Tea", milk="oat"))
        assert fixed.milk is None
        assert corrections[0].field == "milk"
        assert corrections[0].reason == ReasonCode.UNSUPPORTED_MODIFIER

    def test_ice_level_on_hot_drink(self, validator, make_line):
        """Test that "less ice" is removed from a hot latte."""
        fixed, corrections = validator.validate_line(
            make_line("Latte", temperature="hot", modifiers={"less_ice": 1})
        )
        assert fixed.modifiers == {}
        assert corrections[0].field == "modifier"
        assert corrections[0].from_value == "less_ice"

    def test_espresso_on_tea(self, validator, make_line):
        """Test that espresso shots are not allowed on tea."""
        fixed, corrections = validator.validate_line(make_line("Jasmine Tea", modifiers={"espresso_shot": 1}))
        assert fixed.modifiers == {}
        assert corrections[0].reason == ReasonCode.UNSUPPORTED_MODIFIER

    def test_unknown_size_word(self, validator, make_line):
        """Test that "medium" is reported as a size."""
        _, corrections = validator.validate_line(make_line("Mocha", modifiers={"medium": 1}))
        assert corrections[0].field == "size"


class TestCaps:
    """Shot and syrup caps."""

    def test_shots_clamped(self, validator, make_line):
        """Test that 3 extra shots are clamped to 2."""
        fixed, corrections = validator.validate_line(make_line("Latte", modifiers={"espresso_shot": 3}))
        assert fixed.modifiers == {"espresso_shot": 2}
        assert corrections[0].reason == ReasonCode.MODIFIER_CAPPED
        assert corrections[0].to_value == "2"

    def test_syrups_summed_across_flavours(self, validator, make_line):
        """Test that 3 caramel + 3 hazelnut is clamped to 4 pumps total."""
        fixed, corrections = validator.validate_line(
            make_line("Americano", modifiers={"caramel_syrup": 3, "hazelnut_syrup": 3})
        )
        assert fixed.modifiers == {"caramel_syrup": 3, "hazelnut_syrup": 1}
        assert corrections[0].field == "syrup"
        assert corrections[0].from_value == "6"
        assert corrections[0].to_value == "4"

    def test_exclusive_levels_keep_latest(self, validator, make_line):
        """Test that only one sweetness level survives."""
        fixed, corrections = validator.validate_line(
            make_line("Black Tea", temperature="iced", modifiers={"no_sugar": 1, "extra_sugar": 1})
        )
        assert fixed.modifiers == {"extra_sugar": 1}
        assert corrections == []

    def test_within_caps_unchanged(self, validator, make_line):
        """Test that legal add-ons pass through."""
        original = make_line("Latte", size="small", temperature="hot", milk="whole",
                             modifiers={"espresso_shot": 2, "caramel_syrup": 4})
        fixed, corrections = validator.validate_line(original)
        assert fixed == original
        assert corrections == []


class TestValidateCart:
    """Whole-cart validation."""

    def test_validated_cart_is_a_fixed_point(self, validator, make_line):
        """Test that validating twice changes nothing the second time."""
        cart = (
            make_line("Coffee Frappuccino", temperature="hot", modifiers={"espresso_shot": 5}),
            make_line("Plain Croissant", size="large"),
        )
        once, _ = validator.validate_cart(cart)
        twice, corrections = validator.validate_cart(once)
        assert twice == once
        assert corrections == []

    def test_unknown_items_dropped(self, validator, make_line):
        """Test that lines for items not on the menu are removed."""
        cart, _ = validator.validate_cart((make_line("Cappuccino"), make_line("Latte")))
        assert [line.item_name for line in cart] == ["Latte"]

    def test_correction_line_index(self, validator, make_line):
        """Test that corrections record the line they came from."""
        _, corrections = validator.validate_cart(
            (make_line("Latte"), make_line("Cold Brew", temperature="hot"))
        )
        assert corrections[0].line_index == 1


class TestSelectGuardrail:
    """One guardrail per turn, by precedence."""

    def _correction(self, reason):
        return Correction(line_index=0, item_name="Latte", field="x", reason=reason)

    def test_precedence(self):
        """Test that pastry stripping outranks every other reason."""
        chosen = select_guardrail([
            self._correction(ReasonCode.UNSUPPORTED_MODIFIER),
            self._correction(ReasonCode.ICED_ONLY_ITEM),
            self._correction(ReasonCode.PASTRY_MODIFIERS_STRIPPED),
        ])
        assert chosen.reason == ReasonCode.PASTRY_MODIFIERS_STRIPPED

    def test_first_of_equal_precedence_wins(self):
        """Test that ties keep the earlier correction."""
        first = self._correction(ReasonCode.MODIFIER_CAPPED)
        second = self._correction(ReasonCode.MODIFIER_CAPPED)
        assert select_guardrail([first, second]) is first

    def test_no_corrections(self):
        """Test that no corrections means no guardrail."""
        assert select_guardrail([]) is None
