"""Tests for the cart calculator."""

from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.test import override_settings

from django_pos.orders.services.cart import average_prices_by_item, calculate_cart, group_priced_units
from django_pos.orders.services.pricing import (
    CalculatedLine,
    CartLine,
    CatalogItem,
    ComboPromotion,
    ComboRule,
    PricedUnit,
    PromotionScope,
    PromotionType,
    SimplePromotion,
    UnknownMenuItemError,
    quantize_money,
)

MAINS, SIDES, BEVERAGES, ICE_CREAM, APPETIZERS = 1, 2, 3, 4, 5

BURGER = CatalogItem(id=1, base_price=Decimal("10.00"), category_id=MAINS)
VEGGIE_BURGER = CatalogItem(id=2, base_price=Decimal("16.99"), category_id=MAINS)
FRIES = CatalogItem(id=3, base_price=Decimal("5.99"), category_id=SIDES)
COKE = CatalogItem(id=4, base_price=Decimal("3.49"), category_id=BEVERAGES)
VANILLA = CatalogItem(id=5, base_price=Decimal("4.99"), category_id=ICE_CREAM)
CHOCOLATE = CatalogItem(id=6, base_price=Decimal("5.49"), category_id=ICE_CREAM)
GARLIC_BREAD = CatalogItem(id=7, base_price=Decimal("6.99"), category_id=APPETIZERS)

CATALOG = [BURGER, VEGGIE_BURGER, FRIES, COKE, VANILLA, CHOCOLATE, GARLIC_BREAD]
TAX_RATE = Decimal("0.07")

LUNCH_SPECIAL = ComboPromotion(
    id=100,
    value=Decimal("15.00"),
    rules=(
        ComboRule(required_quantity=1, menu_item_id=VEGGIE_BURGER.id, is_discounted=False),
        ComboRule(required_quantity=1, menu_item_id=FRIES.id),
        ComboRule(required_quantity=1, menu_item_id=COKE.id),
    ),
)
ICE_CREAM_DUO = ComboPromotion(
    id=101,
    value=Decimal("8.00"),
    rules=(ComboRule(required_quantity=2, category_id=ICE_CREAM),),
)
HAPPY_HOUR = SimplePromotion(
    id=1,
    promotion_type=PromotionType.PERCENT,
    value=Decimal("15"),
    scope=PromotionScope.CATEGORY,
    category_id=BEVERAGES,
)
GARLIC_BREAD_OFF = SimplePromotion(
    id=2,
    promotion_type=PromotionType.FIXED,
    value=Decimal("2.00"),
    scope=PromotionScope.ITEM,
    menu_item_id=GARLIC_BREAD.id,
)
ICE_CREAM_OFF = SimplePromotion(
    id=3,
    promotion_type=PromotionType.FIXED,
    value=Decimal("0.50"),
    scope=PromotionScope.CATEGORY,
    category_id=ICE_CREAM,
)


def _calculate(lines, promotions=()):
    return calculate_cart(
        [CartLine(item.id, quantity) for item, quantity in lines],
        CATALOG,
        promotions,
        tax_rate=TAX_RATE,
    )


def _line_for(calculation, item):
    matches = [line for line in calculation.lines if line.menu_item_id == item.id]
    assert len(matches) == 1
    return matches[0]


@pytest.mark.unit
class TestScenarios:
    def test_no_promotions(self):
        calculation = _calculate([(BURGER, 2)])

        assert calculation.subtotal == Decimal("20.00")
        assert calculation.discount == Decimal("0.00")
        assert calculation.tax == Decimal("1.40")
        assert calculation.total == Decimal("21.40")

    def test_simple_percent_category_promotion(self):
        promotion = SimplePromotion(
            id=5,
            promotion_type=PromotionType.PERCENT,
            value=Decimal("15"),
            scope=PromotionScope.CATEGORY,
            category_id=MAINS,
        )

        calculation = _calculate([(BURGER, 2)], [promotion])

        line = _line_for(calculation, BURGER)
        assert line.frozen_price == Decimal("8.50")
        assert line.quantity == 2
        assert line.applied_promotion_id == promotion.id
        assert calculation.subtotal == Decimal("17.00")
        assert calculation.discount == Decimal("3.00")

    def test_fixed_promotion_exceeding_price_is_clamped(self):
        promotion = SimplePromotion(
            id=6,
            promotion_type=PromotionType.FIXED,
            value=Decimal("10.00"),
            scope=PromotionScope.ITEM,
            menu_item_id=GARLIC_BREAD.id,
        )

        calculation = _calculate([(GARLIC_BREAD, 1)], [promotion])

        assert _line_for(calculation, GARLIC_BREAD).frozen_price == Decimal("0.00")
        assert calculation.subtotal == Decimal("0.00")
        assert calculation.total == Decimal("0.00")

    def test_combo_with_trigger_and_rewards(self):
        calculation = _calculate([(VEGGIE_BURGER, 1), (FRIES, 1), (COKE, 1)], [LUNCH_SPECIAL])

        burger = _line_for(calculation, VEGGIE_BURGER)
        fries = _line_for(calculation, FRIES)
        coke = _line_for(calculation, COKE)
        assert burger.frozen_price == Decimal("16.99")
        assert burger.discount == Decimal("0.00")
        assert fries.frozen_price == Decimal("9.48")
        assert coke.frozen_price == Decimal("5.52")
        assert fries.frozen_price + coke.frozen_price == Decimal("15.00")
        assert {burger.applied_promotion_id, fries.applied_promotion_id, coke.applied_promotion_id} == {
            LUNCH_SPECIAL.id
        }

    def test_combo_with_insufficient_units_falls_back_to_simple_promotions(self):
        calculation = _calculate([(VANILLA, 1)], [ICE_CREAM_DUO])

        line = _line_for(calculation, VANILLA)
        assert line.frozen_price == Decimal("4.99")
        assert line.applied_promotion_id is None

        calculation = _calculate([(VANILLA, 1)], [ICE_CREAM_DUO, ICE_CREAM_OFF])

        line = _line_for(calculation, VANILLA)
        assert line.frozen_price == Decimal("4.49")
        assert line.applied_promotion_id == ICE_CREAM_OFF.id

    def test_bigger_simple_discount_wins(self):
        listed_first = SimplePromotion(
            id=7,
            promotion_type=PromotionType.FIXED,
            value=Decimal("0.50"),
            scope=PromotionScope.ITEM,
            menu_item_id=BURGER.id,
        )
        listed_second = SimplePromotion(
            id=8,
            promotion_type=PromotionType.PERCENT,
            value=Decimal("25"),
            scope=PromotionScope.CATEGORY,
            category_id=MAINS,
        )

        calculation = _calculate([(BURGER, 1)], [listed_first, listed_second])

        line = _line_for(calculation, BURGER)
        assert line.applied_promotion_id == listed_second.id
        assert line.frozen_price == Decimal("7.50")


@pytest.mark.unit
class TestCalculationShape:
    def test_combo_and_leftover_units_of_one_item_form_separate_lines(self):
        calculation = _calculate([(VANILLA, 3)], [ICE_CREAM_DUO])

        summary = [
            (line.menu_item_id, line.quantity, line.frozen_price, line.applied_promotion_id) for line in calculation.lines
        ]
        assert summary == [
            (VANILLA.id, 2, Decimal("4.00"), ICE_CREAM_DUO.id),
            (VANILLA.id, 1, Decimal("4.99"), None),
        ]
        assert calculation.subtotal == Decimal("12.99")

    def test_combo_consumes_units_before_simple_promotions(self):
        calculation = _calculate([(COKE, 2), (VEGGIE_BURGER, 1), (FRIES, 1)], [HAPPY_HOUR, LUNCH_SPECIAL])

        coke_lines = {line.applied_promotion_id: line for line in calculation.lines if line.menu_item_id == COKE.id}
        assert coke_lines[LUNCH_SPECIAL.id].quantity == 1
        assert coke_lines[HAPPY_HOUR.id].quantity == 1
        assert coke_lines[HAPPY_HOUR.id].frozen_price == Decimal("2.97")

    def test_empty_cart_is_all_zero(self):
        calculation = _calculate([])

        assert calculation.lines == []
        assert calculation.subtotal == Decimal("0.00")
        assert calculation.tax == Decimal("0.00")
        assert calculation.total == Decimal("0.00")

    def test_unknown_menu_item_aborts_calculation(self):
        with pytest.raises(UnknownMenuItemError, match="does not exist"):
            calculate_cart([CartLine(BURGER.id, 1), CartLine(999, 1)], CATALOG, [], tax_rate=TAX_RATE)

    def test_unknown_menu_item_error_is_a_validation_error(self):
        assert issubclass(UnknownMenuItemError, ValidationError)

    def test_quantity_below_one_is_rejected(self):
        with pytest.raises(ValidationError, match="at least 1"):
            calculate_cart([CartLine(BURGER.id, 0)], CATALOG, [], tax_rate=TAX_RATE)

    def test_tax_rate_defaults_to_configured_rate(self):
        with override_settings(DJANGO_POS={"tax_rate": "0.10"}):
            calculation = calculate_cart([CartLine(BURGER.id, 1)], CATALOG, [])

        assert calculation.tax == Decimal("1.00")
        assert calculation.total == Decimal("11.00")


@pytest.mark.unit
class TestInvariants:
    CARTS = [
        [(BURGER, 2)],
        [(VEGGIE_BURGER, 2), (FRIES, 1), (COKE, 3)],
        [(VANILLA, 3), (CHOCOLATE, 2), (GARLIC_BREAD, 1)],
        [(COKE, 7), (GARLIC_BREAD, 2), (CHOCOLATE, 1)],
    ]
    PROMOTIONS = [ICE_CREAM_DUO, HAPPY_HOUR, GARLIC_BREAD_OFF, ICE_CREAM_OFF]

    @pytest.mark.parametrize("cart", CARTS)
    def test_total_is_subtotal_plus_tax(self, cart):
        calculation = _calculate(cart, self.PROMOTIONS)

        assert calculation.total == calculation.subtotal + calculation.tax
        assert calculation.tax == quantize_money(calculation.subtotal * TAX_RATE)

    @pytest.mark.parametrize("cart", CARTS)
    def test_discount_is_base_total_minus_subtotal(self, cart):
        calculation = _calculate(cart, self.PROMOTIONS)

        base_total = sum(line.base_price * line.quantity for line in calculation.lines)
        assert calculation.discount == base_total - calculation.subtotal
        assert calculation.discount >= 0

    @pytest.mark.parametrize("cart", CARTS)
    def test_quantities_are_preserved(self, cart):
        calculation = _calculate(cart, self.PROMOTIONS)

        for item, quantity in cart:
            assert sum(line.quantity for line in calculation.lines if line.menu_item_id == item.id) == quantity

    @pytest.mark.parametrize("cart", CARTS)
    def test_more_simple_promotions_never_raise_unit_prices(self, cart):
        simple = [HAPPY_HOUR, GARLIC_BREAD_OFF, ICE_CREAM_OFF]

        previous = _calculate(cart)
        for count in range(1, len(simple) + 1):
            current = _calculate(cart, simple[:count])
            for item, _ in cart:
                before = max(line.frozen_price for line in previous.lines if line.menu_item_id == item.id)
                after = max(line.frozen_price for line in current.lines if line.menu_item_id == item.id)
                assert after <= before
            assert current.subtotal <= previous.subtotal
            previous = current

    @pytest.mark.parametrize("cart", CARTS)
    def test_calculation_is_idempotent(self, cart):
        assert _calculate(cart, self.PROMOTIONS) == _calculate(cart, self.PROMOTIONS)


@pytest.mark.unit
class TestGroupingHelpers:
    def test_group_priced_units_keeps_first_seen_order(self):
        units = [
            PricedUnit(menu_item_id=2, base_price=Decimal("5.00"), frozen_price=Decimal("5.00")),
            PricedUnit(menu_item_id=1, base_price=Decimal("3.00"), frozen_price=Decimal("2.00"), applied_promotion_id=9),
            PricedUnit(menu_item_id=2, base_price=Decimal("5.00"), frozen_price=Decimal("5.00")),
        ]

        lines = group_priced_units(units)

        assert [(line.menu_item_id, line.quantity) for line in lines] == [(2, 2), (1, 1)]
        assert lines[1].discount == Decimal("1.00")

    def test_average_prices_by_item_is_weighted_by_quantity(self):
        lines = [
            CalculatedLine(5, 2, Decimal("4.99"), Decimal("4.00"), Decimal("0.99"), 101),
            CalculatedLine(5, 1, Decimal("4.99"), Decimal("4.99"), Decimal("0.00")),
            CalculatedLine(6, 1, Decimal("5.49"), Decimal("5.49"), Decimal("0.00")),
        ]

        assert average_prices_by_item(lines) == {5: Decimal("4.33"), 6: Decimal("5.49")}
