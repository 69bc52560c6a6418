"""Greedy combo allocation.

Combos are tried from the highest bundle price down. Each combo is applied as
many times as the remaining units allow before moving on to the next one, and
units consumed by a combo instance are never offered to another promotion.
The result is deterministic but not necessarily the allocation with the
largest total discount; that trade-off is the production behaviour and must
not be replaced by an exhaustive search.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal

from django_pos.orders.services.pricing import (
    ZERO,
    CatalogItem,
    ComboPromotion,
    PricedUnit,
    Promotion,
    matches_rule,
    quantize_money,
)


@dataclass(frozen=True, slots=True)
class _MatchedUnit:
    item: CatalogItem
    is_reward: bool


def sort_combos(promotions: Iterable[Promotion]) -> list[ComboPromotion]:
    """Return the COMBO promotions ordered by descending bundle price.

    The sort is stable, so combos with the same value keep their input order.
    """
    combos = [promotion for promotion in promotions if isinstance(promotion, ComboPromotion)]
    return sorted(combos, key=lambda combo: combo.value, reverse=True)


def allocate_combos(
    units: Sequence[int],
    items: Mapping[int, CatalogItem],
    promotions: Iterable[Promotion],
) -> tuple[list[PricedUnit], list[int]]:
    """Greedily carve combo instances out of a pool of units.

    Args:
        units: One menu item id per unit, in cart order. Not modified.
        items: Catalog lookup for every id appearing in *units*.
        promotions: Active promotions; only COMBO promotions are used.

    Returns:
        A tuple of (priced_units, remaining_units). ``priced_units`` holds one
        entry per unit consumed by a combo instance; ``remaining_units`` is
        the pool left for simple promotions, still in cart order.
    """
    pool = list(units)
    priced: list[PricedUnit] = []

    for combo in sort_combos(promotions):
        if sum(rule.required_quantity for rule in combo.rules) <= 0:
            continue
        while True:
            match = _match_instance(combo, pool, items)
            if match is None:
                break
            matched, pool = match
            priced.extend(_price_instance(combo, matched))

    return priced, pool


def _match_instance(
    combo: ComboPromotion,
    pool: list[int],
    items: Mapping[int, CatalogItem],
) -> tuple[list[_MatchedUnit], list[int]] | None:
    """Try to satisfy every rule of *combo* once from a copy of *pool*.

    Rules are filled in order, each taking the first matching units left.
    Returns ``None`` when any rule comes up short, otherwise the matched
    units and the pool without them.
    """
    remaining = list(pool)
    matched: list[_MatchedUnit] = []

    for rule in combo.rules:
        for _ in range(rule.required_quantity):
            index = next(
                (idx for idx, item_id in enumerate(remaining) if matches_rule(items[item_id], rule)),
                None,
            )
            if index is None:
                return None
            item = items[remaining.pop(index)]
            matched.append(_MatchedUnit(item=item, is_reward=rule.is_discounted))

    return matched, remaining


def _price_instance(combo: ComboPromotion, matched: list[_MatchedUnit]) -> list[PricedUnit]:
    """Price one combo instance.

    With both triggers and rewards, triggers keep their base price and the
    rewards share the bundle price. Otherwise the bundle price is shared by
    every matched unit.
    """
    triggers = [unit.item for unit in matched if not unit.is_reward]
    rewards = [unit.item for unit in matched if unit.is_reward]

    if triggers and rewards:
        priced = [
            PricedUnit(
                menu_item_id=item.id,
                base_price=item.base_price,
                frozen_price=item.base_price,
                applied_promotion_id=combo.id,
            )
            for item in triggers
        ]
        priced.extend(_split_bundle(combo, rewards))
        return priced

    return _split_bundle(combo, triggers + rewards)


def _split_bundle(combo: ComboPromotion, items: list[CatalogItem]) -> list[PricedUnit]:
    """Distribute the bundle price across *items* in proportion to base price.

    Shares are rounded to cents and the last item receives the remainder, so
    the instance adds up to the bundle price exactly. A bundle price above
    the items' combined base price is honoured as configured. A zero base
    total makes every item free.
    """
    base_total = sum((item.base_price for item in items), ZERO)
    if base_total <= ZERO:
        return [
            PricedUnit(
                menu_item_id=item.id,
                base_price=item.base_price,
                frozen_price=ZERO,
                applied_promotion_id=combo.id,
            )
            for item in items
        ]

    bundle_price = quantize_money(combo.value)
    ratio: Decimal = bundle_price / base_total
    remaining = bundle_price
    priced: list[PricedUnit] = []

    for position, item in enumerate(items):
        if position == len(items) - 1:
            share = remaining
        else:
            share = quantize_money(item.base_price * ratio)
        share = max(ZERO, min(share, remaining))
        remaining -= share
        priced.append(
            PricedUnit(
                menu_item_id=item.id,
                base_price=item.base_price,
                frozen_price=share,
                applied_promotion_id=combo.id,
            )
        )

    return priced
