"""Payment service for settling orders at the register.

Card payments are taken on an external terminal, so this service only records
how an order was settled. All methods are stateless and operate on model
instances directly.
"""

import logging

from django.core.exceptions import ValidationError

from django_pos.orders.models import Order
from django_pos.orders.services.transactions import order_transaction
from django_pos.orders.signals import order_paid

logger = logging.getLogger(__name__)

IMMEDIATE_PAYMENT_METHODS = frozenset({Order.PaymentMethod.CASH, Order.PaymentMethod.CARD_EXTERNAL})


def _mark_order_paid(order: Order, method: str) -> None:
    """Transition an order to PAID and fire the signal.

    Args:
        order: The order to mark as paid (must already be locked for update).
        method: The payment method that settled the order.
    """
    order.status = Order.Status.PAID
    order.payment_method = method
    order.save(update_fields=["status", "payment_method", "updated_at"])
    order_paid.send(sender=Order, order=order)


class PaymentService:
    """Stateless service for payment operations.

    Records cash and external card payments, and the pay-later arrangement
    used for house accounts and tabs.
    """

    @staticmethod
    def record_payment(order: Order, method: str) -> Order:
        """Record how an open order is being paid.

        ``LATER_PAY`` only stores the method; the order stays OPEN until
        :meth:`collect_later_payment` is called. Cash and external card
        payments settle the order immediately.

        Args:
            order: The order to pay.
            method: One of ``Order.PaymentMethod``.

        Returns:
            The updated Order.

        Raises:
            ValidationError: If the order is not open or the method is unknown.
            OrderProcessingError: If the database write fails.
        """
        if method not in Order.PaymentMethod.values:
            raise ValidationError(f"Unknown payment method '{method}'.")

        with order_transaction("record payment"):
            order = Order.objects.select_for_update().get(pk=order.pk)
            if order.status != Order.Status.OPEN:
                raise ValidationError(
                    f"Payment can only be recorded for open orders. This order is '{order.get_status_display()}'."
                )

            if method == Order.PaymentMethod.LATER_PAY:
                order.payment_method = method
                order.save(update_fields=["payment_method", "updated_at"])
            else:
                _mark_order_paid(order, method)

        logger.info("Recorded %s payment for order %s (status: %s)", method, order.reference, order.status)
        return order

    @staticmethod
    def collect_later_payment(order: Order, method: str) -> Order:
        """Settle an order previously marked as pay-later.

        Args:
            order: The open order with ``LATER_PAY`` recorded.
            method: ``CASH`` or ``CARD_EXTERNAL``.

        Returns:
            The updated Order with PAID status.

        Raises:
            ValidationError: If the order is not an open pay-later order or the
                method cannot settle it.
            OrderProcessingError: If the database write fails.
        """
        if method not in IMMEDIATE_PAYMENT_METHODS:
            raise ValidationError("Pay-later orders must be settled with cash or card.")

        with order_transaction("collect payment"):
            order = Order.objects.select_for_update().get(pk=order.pk)
            if order.status != Order.Status.OPEN or order.payment_method != Order.PaymentMethod.LATER_PAY:
                raise ValidationError("Only open pay-later orders can be collected.")

            _mark_order_paid(order, method)

        logger.info("Collected pay-later order %s via %s", order.reference, method)
        return order
