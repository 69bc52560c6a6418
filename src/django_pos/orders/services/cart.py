"""Cart calculation for orders.

Turns a list of cart lines into frozen per-unit prices and order totals. All
functions are pure: the same lines, catalog, and promotions always produce
the same result, so the calculation can be repeated safely when a
transaction is retried.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal

from django.core.exceptions import ValidationError

from django_pos.orders.services.combos import allocate_combos
from django_pos.orders.services.pricing import (
    ZERO,
    CalculatedLine,
    CartCalculation,
    CartLine,
    CatalogItem,
    PricedUnit,
    Promotion,
    SimplePromotion,
    UnknownMenuItemError,
    quantize_money,
    resolve_simple_discount,
)
from django_pos.settings import get_config


def calculate_cart(
    lines: Iterable[CartLine],
    catalog: Iterable[CatalogItem],
    promotions: Iterable[Promotion],
    *,
    tax_rate: Decimal | None = None,
) -> CartCalculation:
    """Price a cart against the catalog and the active promotions.

    Combos are allocated first (highest bundle price first, greedily), then
    every unit left over gets the best simple promotion that applies to it.
    Per-unit results are grouped back into lines and totalled.

    Args:
        lines: The requested items and quantities.
        catalog: Catalog entries covering every menu item in *lines*.
        promotions: Currently active promotions, simple and combo.
        tax_rate: Tax rate applied to the subtotal. Defaults to
            ``DJANGO_POS["tax_rate"]``.

    Returns:
        A CartCalculation with grouped lines, subtotal, discount, tax, and
        total.

    Raises:
        UnknownMenuItemError: If a line references a menu item that is not in
            the catalog.
        ValidationError: If a line asks for a quantity below one.
    """
    items = {item.id: item for item in catalog}
    promotions = list(promotions)
    units = _expand_units(lines, items)

    priced, remaining = allocate_combos(units, items, promotions)

    simple_promotions = [promotion for promotion in promotions if isinstance(promotion, SimplePromotion)]
    for item_id in remaining:
        item = items[item_id]
        result = resolve_simple_discount(item, simple_promotions)
        priced.append(
            PricedUnit(
                menu_item_id=item.id,
                base_price=item.base_price,
                frozen_price=result.effective_price,
                applied_promotion_id=result.applied_promotion.id if result.applied_promotion else None,
            )
        )

    calculated_lines = group_priced_units(priced)
    if tax_rate is None:
        tax_rate = get_config().tax_rate
    return _summarize(calculated_lines, tax_rate)


def group_priced_units(units: Iterable[PricedUnit]) -> list[CalculatedLine]:
    """Collapse identically priced units into calculated lines.

    Units are grouped by menu item, applied promotion, and frozen price, in
    the order each group is first seen.
    """
    groups: dict[tuple[int, int | None, Decimal], CalculatedLine] = {}
    for unit in units:
        key = (unit.menu_item_id, unit.applied_promotion_id, unit.frozen_price)
        line = groups.get(key)
        if line is not None:
            line.quantity += 1
            continue
        groups[key] = CalculatedLine(
            menu_item_id=unit.menu_item_id,
            quantity=1,
            base_price=unit.base_price,
            frozen_price=unit.frozen_price,
            discount=unit.base_price - unit.frozen_price,
            applied_promotion_id=unit.applied_promotion_id,
        )
    return list(groups.values())


def average_prices_by_item(lines: Iterable[CalculatedLine]) -> dict[int, Decimal]:
    """Return the quantity-weighted average frozen price of each menu item.

    Averages are rounded to cents. Used when calculated groups cannot be
    traced back to individual persisted lines.
    """
    totals: dict[int, Decimal] = {}
    quantities: dict[int, int] = {}
    for line in lines:
        totals[line.menu_item_id] = totals.get(line.menu_item_id, ZERO) + line.frozen_price * line.quantity
        quantities[line.menu_item_id] = quantities.get(line.menu_item_id, 0) + line.quantity
    return {item_id: quantize_money(total / quantities[item_id]) for item_id, total in totals.items()}


def _expand_units(lines: Iterable[CartLine], items: Mapping[int, CatalogItem]) -> list[int]:
    """Expand cart lines into one menu item id per unit, validating each line."""
    units: list[int] = []
    for line in lines:
        if line.menu_item_id not in items:
            raise UnknownMenuItemError(f"Menu item '{line.menu_item_id}' does not exist.")
        if line.quantity < 1:
            raise ValidationError(f"Quantity for menu item '{line.menu_item_id}' must be at least 1.")
        units.extend([line.menu_item_id] * line.quantity)
    return units


def _summarize(lines: list[CalculatedLine], tax_rate: Decimal) -> CartCalculation:
    """Compute subtotal, discount, tax, and total for grouped lines."""
    subtotal = quantize_money(sum((line.frozen_price * line.quantity for line in lines), ZERO))
    base_total = quantize_money(sum((line.base_price * line.quantity for line in lines), ZERO))
    tax = quantize_money(subtotal * tax_rate)
    return CartCalculation(
        lines=lines,
        subtotal=subtotal,
        discount=base_total - subtotal,
        tax=tax,
        total=subtotal + tax,
    )
