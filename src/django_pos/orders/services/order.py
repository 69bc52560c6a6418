"""Order lifecycle service.

Creates orders, adds items to open orders, and voids items or whole orders,
re-running the cart calculation each time the set of live lines changes. All
methods are stateless, run in a single transaction, and operate on model
instances directly.
"""

import logging
import secrets
import string
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from django_pos.menu.services import get_active_promotions, get_catalog
from django_pos.orders.models import Order, OrderLine
from django_pos.orders.services.cart import average_prices_by_item, calculate_cart
from django_pos.orders.services.payment import IMMEDIATE_PAYMENT_METHODS
from django_pos.orders.services.pricing import CalculatedLine, CartCalculation, CartLine
from django_pos.orders.services.transactions import order_transaction
from django_pos.orders.signals import order_paid
from django_pos.settings import get_config

logger = logging.getLogger(__name__)

_TOTAL_FIELDS = ["subtotal", "discount", "tax", "total", "updated_at"]


@dataclass(frozen=True, slots=True)
class OrderItemInput:
    """An item requested at the register, with optional kitchen notes."""

    menu_item_id: int
    quantity: int
    notes: str = ""


@dataclass
class _UnassignedInput:
    menu_item_id: int
    quantity: int
    notes: str


def _generate_reference() -> str:
    """Generate an order reference using the configured prefix.

    The prefix is set via ``DJANGO_POS["order_reference_prefix"]`` (default
    ``"ORD"``), producing references like ``ORD-A1B2C3D4``.
    """
    config = get_config()
    chars = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(chars) for _ in range(8))
    return f"{config.order_reference_prefix}-{suffix}"


def price_cart(lines: Iterable[CartLine]) -> CartCalculation:
    """Price cart lines against the current catalog and active promotions."""
    lines = list(lines)
    catalog = get_catalog(line.menu_item_id for line in lines)
    return calculate_cart(lines, catalog, get_active_promotions())


class OrderService:
    """Stateless service for order lifecycle operations.

    Every operation reads the catalog and active promotions, recalculates,
    and writes inside one transaction, so a failure never leaves partial
    pricing behind.
    """

    @staticmethod
    def fire_order(
        *,
        items: Iterable[OrderItemInput],
        order_type: str = Order.OrderType.DINE_IN,
        created_by: object | None = None,
        payment_method: str | None = None,
        customer_name: str = "",
        customer_phone: str = "",
        scheduled_at: datetime | None = None,
    ) -> Order:
        """Create a priced order from the register's item list.

        Quick sales are settled immediately: they require a cash or card
        payment method, are created PAID with READY lines, and fire ``order_paid``. Every
        other order type starts OPEN with PENDING lines. Customer details are
        only kept for takeout orders.

        Each calculated price group is mapped back onto the requested items so
        that every persisted line keeps its notes; a requested item is split
        across several lines when its units landed in different price groups.

        Args:
            items: Requested items; at least one is required.
            order_type: One of ``Order.OrderType``.
            created_by: The staff user firing the order.
            payment_method: One of ``Order.PaymentMethod``; required for
                quick sales.
            customer_name: Takeout customer name.
            customer_phone: Takeout customer phone.
            scheduled_at: Optional pickup or service time.

        Returns:
            The newly created Order.

        Raises:
            ValidationError: If the input is invalid or references an unknown
                menu item.
            OrderProcessingError: If the database write fails.
        """
        items = _validate_items(items, empty_message="Order must have at least one item.")
        if order_type not in Order.OrderType.values:
            raise ValidationError(f"Unknown order type '{order_type}'.")
        if payment_method and payment_method not in Order.PaymentMethod.values:
            raise ValidationError(f"Unknown payment method '{payment_method}'.")
        is_quick_sale = order_type == Order.OrderType.QUICK_SALE
        if is_quick_sale and not payment_method:
            raise ValidationError("Payment method required for Quick Sale.")
        if is_quick_sale and payment_method not in IMMEDIATE_PAYMENT_METHODS:
            raise ValidationError("Quick Sale must be paid with cash or card.")

        with order_transaction("create order"):
            calculation = price_cart(CartLine(item.menu_item_id, item.quantity) for item in items)
            is_takeout = order_type == Order.OrderType.TAKEOUT
            order = _create_order_row(
                order_type=order_type,
                status=Order.Status.PAID if is_quick_sale else Order.Status.OPEN,
                payment_method=payment_method if is_quick_sale else "",
                customer_name=customer_name if is_takeout else "",
                customer_phone=customer_phone if is_takeout else "",
                scheduled_at=scheduled_at,
                created_by=created_by,
                calculation=calculation,
            )
            line_status = OrderLine.Status.READY if is_quick_sale else OrderLine.Status.PENDING
            OrderLine.objects.bulk_create(_assign_groups_to_inputs(order, calculation.lines, items, line_status))

            if is_quick_sale:
                order_paid.send(sender=Order, order=order)

        logger.info("Created %s order %s (total %s)", order.order_type, order.reference, order.total)
        return order

    @staticmethod
    def add_items(order: Order, *, items: Iterable[OrderItemInput]) -> Order:
        """Add items to an open order and re-price the whole order.

        The order's non-voided lines and the new items are priced together, so
        a combo can span old and new units. Because the calculated groups
        cannot be traced back to individual rows, every line of a given menu
        item (existing and new) receives that item's quantity-weighted
        average frozen price. Order totals come straight from the
        calculation.

        Args:
            order: The order to extend.
            items: The items to add; at least one is required.

        Returns:
            The updated Order.

        Raises:
            ValidationError: If the order is not open or the input is invalid.
            OrderProcessingError: If the database write fails.
        """
        items = _validate_items(items, empty_message="Must add at least one item.")

        with order_transaction("add items to order"):
            order = Order.objects.select_for_update().get(pk=order.pk)
            if order.status != Order.Status.OPEN:
                raise ValidationError("Items can only be added to open orders.")

            existing = list(order.lines.exclude(status=OrderLine.Status.VOIDED))
            cart_lines = [CartLine(line.menu_item_id, line.quantity) for line in existing]
            cart_lines.extend(CartLine(item.menu_item_id, item.quantity) for item in items)
            calculation = price_cart(cart_lines)

            averages = average_prices_by_item(calculation.lines)
            base_prices = {line.menu_item_id: line.base_price for line in calculation.lines}

            for line in existing:
                line.frozen_price = averages[line.menu_item_id]
                line.base_price = base_prices[line.menu_item_id]
            OrderLine.objects.bulk_update(existing, ["frozen_price", "base_price"])

            OrderLine.objects.bulk_create(
                [
                    OrderLine(
                        order=order,
                        menu_item_id=item.menu_item_id,
                        quantity=item.quantity,
                        base_price=base_prices[item.menu_item_id],
                        frozen_price=averages[item.menu_item_id],
                        notes=item.notes,
                        status=OrderLine.Status.PENDING,
                    )
                    for item in items
                ]
            )

            _apply_totals(order, calculation)
            order.save(update_fields=_TOTAL_FIELDS)

        logger.info("Added %d item(s) to order %s (total %s)", len(items), order.reference, order.total)
        return order

    @staticmethod
    def remove_item(line: OrderLine) -> Order:
        """Void a single line and recompute the order totals.

        Only the order's totals are recalculated. The remaining lines keep
        their frozen prices even when the void breaks a combo they were part
        of, so prices already shown or printed do not change underneath the
        guest.

        Args:
            line: The line to void.

        Returns:
            The updated Order.

        Raises:
            ValidationError: If the order is not open or the line is already
                voided.
            OrderProcessingError: If the database write fails.
        """
        with order_transaction("remove item"):
            order = Order.objects.select_for_update().get(pk=line.order_id)
            if order.status != Order.Status.OPEN:
                raise ValidationError("Items can only be removed from open orders.")

            line = order.lines.get(pk=line.pk)
            if line.status == OrderLine.Status.VOIDED:
                raise ValidationError("This item has already been voided.")

            line.status = OrderLine.Status.VOIDED
            line.save(update_fields=["status"])

            remaining = order.lines.exclude(status=OrderLine.Status.VOIDED)
            calculation = price_cart(CartLine(other.menu_item_id, other.quantity) for other in remaining)
            _apply_totals(order, calculation)
            order.save(update_fields=_TOTAL_FIELDS)

        logger.info("Voided line %s on order %s (total %s)", line.pk, order.reference, order.total)
        return order

    @staticmethod
    def void_order(order: Order) -> Order:
        """Void an open order and every line on it.

        Totals are left as they were so the voided ticket still shows what
        was rung up.

        Args:
            order: The order to void.

        Returns:
            The updated Order with VOID status.

        Raises:
            ValidationError: If the order is not open.
            OrderProcessingError: If the database write fails.
        """
        with order_transaction("void order"):
            order = Order.objects.select_for_update().get(pk=order.pk)
            if order.status != Order.Status.OPEN:
                raise ValidationError(f"Only open orders can be voided. This order is '{order.get_status_display()}'.")

            order.lines.exclude(status=OrderLine.Status.VOIDED).update(status=OrderLine.Status.VOIDED)
            order.status = Order.Status.VOID
            order.save(update_fields=["status", "updated_at"])

        logger.info("Voided order %s", order.reference)
        return order


def _validate_items(items: Iterable[OrderItemInput], *, empty_message: str) -> list[OrderItemInput]:
    """Materialize and validate requested items before any database work."""
    items = list(items)
    if not items:
        raise ValidationError(empty_message)
    for item in items:
        if item.quantity < 1:
            raise ValidationError("Quantity must be at least 1.")
    return items


def _create_order_row(*, calculation: CartCalculation, **fields: object) -> Order:
    """Insert the order row, retrying on the rare reference collision."""
    while True:
        try:
            with transaction.atomic():
                return Order.objects.create(
                    reference=_generate_reference(),
                    subtotal=calculation.subtotal,
                    discount=calculation.discount,
                    tax=calculation.tax,
                    total=calculation.total,
                    **fields,
                )
        except IntegrityError:
            continue


def _assign_groups_to_inputs(
    order: Order,
    groups: list[CalculatedLine],
    items: list[OrderItemInput],
    status: str,
) -> list[OrderLine]:
    """Build order lines by consuming requested items for each price group.

    Requested items of the same menu item are consumed in request order. A
    request whose units span several price groups yields one line per group,
    each carrying the request's notes.
    """
    pool = [_UnassignedInput(item.menu_item_id, item.quantity, item.notes) for item in items]
    lines: list[OrderLine] = []

    for group in groups:
        needed = group.quantity
        while needed > 0:
            match = next(
                (entry for entry in pool if entry.menu_item_id == group.menu_item_id and entry.quantity > 0),
                None,
            )
            if match is None:
                break
            take = min(needed, match.quantity)
            lines.append(
                OrderLine(
                    order=order,
                    menu_item_id=group.menu_item_id,
                    quantity=take,
                    base_price=group.base_price,
                    frozen_price=group.frozen_price,
                    notes=match.notes,
                    status=status,
                )
            )
            match.quantity -= take
            needed -= take

    return lines


def _apply_totals(order: Order, calculation: CartCalculation) -> None:
    """Copy a calculation's totals onto the order (unsaved)."""
    order.subtotal = calculation.subtotal
    order.discount = calculation.discount
    order.tax = calculation.tax
    order.total = calculation.total
