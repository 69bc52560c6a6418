"""Tests for the promotion matcher and simple discount resolver."""

from decimal import Decimal

import pytest

from django_pos.orders.services.pricing import (
    CatalogItem,
    ComboPromotion,
    ComboRule,
    PromotionScope,
    PromotionType,
    SimplePromotion,
    matches_rule,
    quantize_money,
    resolve_simple_discount,
)

MAINS = 1
APPETIZERS = 2

BURGER = CatalogItem(id=1, base_price=Decimal("10.00"), category_id=MAINS)
GARLIC_BREAD = CatalogItem(id=2, base_price=Decimal("6.99"), category_id=APPETIZERS)


def _fixed(promotion_id, value, *, item=None, category=None):
    return SimplePromotion(
        id=promotion_id,
        promotion_type=PromotionType.FIXED,
        value=Decimal(value),
        scope=PromotionScope.CATEGORY if category is not None else PromotionScope.ITEM,
        menu_item_id=item,
        category_id=category,
    )


def _percent(promotion_id, value, *, item=None, category=None):
    return SimplePromotion(
        id=promotion_id,
        promotion_type=PromotionType.PERCENT,
        value=Decimal(value),
        scope=PromotionScope.CATEGORY if category is not None else PromotionScope.ITEM,
        menu_item_id=item,
        category_id=category,
    )


@pytest.mark.unit
class TestQuantizeMoney:
    def test_rounds_half_up(self):
        assert quantize_money(Decimal("1.005")) == Decimal("1.01")
        assert quantize_money(Decimal("1.004")) == Decimal("1.00")

    def test_pads_to_cents(self):
        assert str(quantize_money(Decimal(20))) == "20.00"


@pytest.mark.unit
class TestMatchesRule:
    def test_matches_by_item_id(self):
        assert matches_rule(BURGER, ComboRule(required_quantity=1, menu_item_id=BURGER.id))

    def test_matches_by_category(self):
        assert matches_rule(BURGER, ComboRule(required_quantity=1, category_id=MAINS))

    def test_other_item_and_category_do_not_match(self):
        rule = ComboRule(required_quantity=1, menu_item_id=GARLIC_BREAD.id)
        assert not matches_rule(BURGER, rule)
        assert not matches_rule(BURGER, ComboRule(required_quantity=1, category_id=APPETIZERS))

    def test_rule_without_target_never_matches(self):
        assert not matches_rule(BURGER, ComboRule(required_quantity=1))


@pytest.mark.unit
class TestResolveSimpleDiscount:
    def test_no_promotions_keeps_base_price(self):
        result = resolve_simple_discount(BURGER, [])

        assert result.effective_price == Decimal("10.00")
        assert result.applied_promotion is None
        assert result.discount == Decimal("0.00")

    def test_percent_category_promotion(self):
        promotion = _percent(7, "15", category=MAINS)

        result = resolve_simple_discount(BURGER, [promotion])

        assert result.effective_price == Decimal("8.50")
        assert result.applied_promotion == promotion
        assert result.discount == Decimal("1.50")

    def test_fixed_promotion_larger_than_price_clamps_to_zero(self):
        promotion = _fixed(3, "10", item=GARLIC_BREAD.id)

        result = resolve_simple_discount(GARLIC_BREAD, [promotion])

        assert result.effective_price == Decimal("0.00")
        assert result.applied_promotion == promotion
        assert result.discount == Decimal("6.99")
        assert result.effective_price + result.discount == GARLIC_BREAD.base_price

    def test_bigger_discount_wins_even_when_listed_second(self):
        small = _fixed(1, "1.00", item=BURGER.id)
        big = _percent(2, "20", item=BURGER.id)

        result = resolve_simple_discount(BURGER, [small, big])

        assert result.applied_promotion == big
        assert result.effective_price == Decimal("8.00")

    def test_equal_discounts_keep_the_first_promotion(self):
        first = _fixed(1, "2.00", item=BURGER.id)
        second = _percent(2, "20", category=MAINS)

        assert resolve_simple_discount(BURGER, [first, second]).applied_promotion == first
        assert resolve_simple_discount(BURGER, [second, first]).applied_promotion == second

    def test_promotions_for_other_targets_are_ignored(self):
        promotions = [_fixed(1, "3.00", item=GARLIC_BREAD.id), _percent(2, "50", category=APPETIZERS)]

        result = resolve_simple_discount(BURGER, promotions)

        assert result.applied_promotion is None
        assert result.effective_price == BURGER.base_price

    def test_combo_promotions_are_ignored(self):
        combo = ComboPromotion(id=9, value=Decimal("1.00"), rules=(ComboRule(1, menu_item_id=BURGER.id),))

        result = resolve_simple_discount(BURGER, [combo])

        assert result.applied_promotion is None

    def test_percent_discount_is_rounded_to_cents(self):
        item = CatalogItem(id=5, base_price=Decimal("3.49"), category_id=4)

        result = resolve_simple_discount(item, [_percent(1, "15", category=4)])

        # 3.49 * 0.85 = 2.9665
        assert result.effective_price == Decimal("2.97")
        assert result.discount == Decimal("0.52")

    def test_adding_promotions_never_raises_the_price(self):
        promotions = [
            _fixed(1, "0.50", item=BURGER.id),
            _percent(2, "10", category=MAINS),
            _fixed(3, "25.00", category=MAINS),
            _percent(4, "5", item=BURGER.id),
        ]

        previous = resolve_simple_discount(BURGER, []).effective_price
        for count in range(1, len(promotions) + 1):
            current = resolve_simple_discount(BURGER, promotions[:count]).effective_price
            assert current <= previous
            previous = current
