"""Pricing primitives shared by the cart calculator and combo allocator.

Defines the plain value types the engine works on (catalog items, promotions,
cart lines, and calculated lines), the rule matcher used by combos, and the
simple discount resolver used for units that are not part of a combo.
Nothing in this module touches the database; callers convert model rows into
these types first (see :mod:`django_pos.menu.services`).
"""

import enum
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.core.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal(100)


def quantize_money(value: Decimal) -> Decimal:
    """Round a monetary amount to whole cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class UnknownMenuItemError(ValidationError):
    """Raised when a cart line references a menu item missing from the catalog."""


class PromotionType(enum.StrEnum):
    """How a promotion changes the price."""

    FIXED = "fixed"
    PERCENT = "percent"
    COMBO = "combo"


class PromotionScope(enum.StrEnum):
    """What a simple promotion targets."""

    ITEM = "item"
    CATEGORY = "category"


@dataclass(frozen=True, slots=True)
class CatalogItem:
    """Pricing view of a menu item."""

    id: int
    base_price: Decimal
    category_id: int


@dataclass(frozen=True, slots=True)
class SimplePromotion:
    """A FIXED or PERCENT discount on one item or one category."""

    id: int
    promotion_type: PromotionType
    value: Decimal
    scope: PromotionScope
    menu_item_id: int | None = None
    category_id: int | None = None


@dataclass(frozen=True, slots=True)
class ComboRule:
    """A quantity requirement inside a combo.

    Exactly one of ``menu_item_id`` / ``category_id`` is expected to be set;
    a rule with neither never matches anything.
    """

    required_quantity: int
    menu_item_id: int | None = None
    category_id: int | None = None
    is_discounted: bool = True


@dataclass(frozen=True, slots=True)
class ComboPromotion:
    """A bundle of rules sold together for ``value``."""

    id: int
    value: Decimal
    rules: tuple[ComboRule, ...] = ()


Promotion = SimplePromotion | ComboPromotion


@dataclass(frozen=True, slots=True)
class CartLine:
    """A requested quantity of one menu item."""

    menu_item_id: int
    quantity: int


@dataclass(frozen=True, slots=True)
class PricedUnit:
    """A single unit with its final price, before grouping."""

    menu_item_id: int
    base_price: Decimal
    frozen_price: Decimal
    applied_promotion_id: int | None = None


@dataclass
class CalculatedLine:
    """A group of identically priced units of one menu item."""

    menu_item_id: int
    quantity: int
    base_price: Decimal
    frozen_price: Decimal
    discount: Decimal
    applied_promotion_id: int | None = None


@dataclass
class CartCalculation:
    """Full pricing result of a cart."""

    lines: list[CalculatedLine]
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True, slots=True)
class SimpleDiscount:
    """Outcome of resolving simple promotions for one unit."""

    effective_price: Decimal
    applied_promotion: SimplePromotion | None
    discount: Decimal


def matches_rule(item: CatalogItem, rule: ComboRule) -> bool:
    """Return True when *item* satisfies *rule* by item id or by category."""
    if rule.menu_item_id is not None and rule.menu_item_id == item.id:
        return True
    return rule.category_id is not None and rule.category_id == item.category_id


def resolve_simple_discount(item: CatalogItem, promotions: Iterable[Promotion]) -> SimpleDiscount:
    """Pick the single best FIXED/PERCENT promotion for one unit of *item*.

    The promotion with the strictly largest absolute discount wins; on a tie
    the one that comes first in *promotions* is kept. The effective price is
    clamped at zero and rounded to cents, and the reported discount is the
    difference actually granted rather than the promotion's nominal amount:
    $10 off a $6.99 item reports 6.99, not 10.00. This keeps
    ``effective_price + discount == base_price`` for every unit.

    Args:
        item: The catalog entry being priced.
        promotions: Active promotions. COMBO promotions are ignored.

    Returns:
        A SimpleDiscount with the effective price, the winning promotion (or
        ``None``), and the discount granted.
    """
    best_promotion: SimplePromotion | None = None
    best_discount = ZERO

    for promotion in promotions:
        if not isinstance(promotion, SimplePromotion) or not _targets_item(promotion, item):
            continue
        discount = _discount_amount(promotion, item.base_price)
        if discount > best_discount:
            best_discount = discount
            best_promotion = promotion

    if best_promotion is None:
        return SimpleDiscount(effective_price=item.base_price, applied_promotion=None, discount=ZERO)

    effective_price = quantize_money(max(ZERO, item.base_price - best_discount))
    return SimpleDiscount(
        effective_price=effective_price,
        applied_promotion=best_promotion,
        discount=item.base_price - effective_price,
    )


def _targets_item(promotion: SimplePromotion, item: CatalogItem) -> bool:
    """Check whether a simple promotion's scope and target cover *item*."""
    if promotion.scope == PromotionScope.ITEM:
        return promotion.menu_item_id == item.id
    if promotion.scope == PromotionScope.CATEGORY:
        return promotion.category_id == item.category_id
    return False


def _discount_amount(promotion: SimplePromotion, base_price: Decimal) -> Decimal:
    """Return the unclamped per-unit discount a promotion would grant."""
    if promotion.promotion_type == PromotionType.FIXED:
        return promotion.value
    if promotion.promotion_type == PromotionType.PERCENT:
        return base_price * promotion.value / HUNDRED
    return ZERO
