"""Catalog and promotion providers for the pricing engine.

Converts menu and promotion rows into the plain value types consumed by
:func:`django_pos.orders.services.cart.calculate_cart`. Temporal filtering of
promotions happens here; the engine trusts whatever it is given.
"""

from collections.abc import Iterable
from datetime import datetime

from django.db.models import Prefetch

from django_pos.menu.models import MenuItem, PromotionRule
from django_pos.menu.models import Promotion as PromotionModel
from django_pos.orders.services.pricing import (
    CatalogItem,
    ComboPromotion,
    ComboRule,
    Promotion,
    PromotionScope,
    PromotionType,
    SimplePromotion,
)


def get_catalog(menu_item_ids: Iterable[int]) -> list[CatalogItem]:
    """Return catalog entries for the given menu item ids.

    Ids that do not exist are simply absent from the result; the cart
    calculator rejects them.
    """
    rows = MenuItem.objects.filter(pk__in=set(menu_item_ids)).values_list("pk", "base_price", "category_id")
    return [CatalogItem(id=pk, base_price=base_price, category_id=category_id) for pk, base_price, category_id in rows]


def get_active_promotions(now: datetime | None = None) -> list[Promotion]:
    """Return every currently active promotion as an engine value.

    Promotions come back in primary-key order, which is also the tie-break
    order for simple promotions granting the same discount. Combo rules keep
    their configured ``sort_order``.

    Args:
        now: Point in time used for the validity window. Defaults to now.
    """
    queryset = PromotionModel.objects.currently_active(now).prefetch_related(
        Prefetch("rules", queryset=PromotionRule.objects.order_by("sort_order", "id"))
    )
    return [to_engine_promotion(promotion) for promotion in queryset.order_by("pk")]


def to_engine_promotion(promotion: PromotionModel) -> Promotion:
    """Convert a promotion row (with its rules) into a SimplePromotion or ComboPromotion."""
    if promotion.is_combo:
        return ComboPromotion(
            id=promotion.pk,
            value=promotion.value,
            rules=tuple(
                ComboRule(
                    required_quantity=rule.required_quantity,
                    menu_item_id=rule.menu_item_id,
                    category_id=rule.category_id,
                    is_discounted=rule.is_discounted,
                )
                for rule in promotion.rules.all()
            ),
        )
    return SimplePromotion(
        id=promotion.pk,
        promotion_type=PromotionType(promotion.promotion_type),
        value=promotion.value,
        scope=PromotionScope(promotion.scope),
        menu_item_id=promotion.menu_item_id,
        category_id=promotion.category_id,
    )
