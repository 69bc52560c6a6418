"""Refund service for paid orders.

Full refunds return whatever balance has not been refunded yet; partial
refunds return the frozen value of the selected lines. All methods are
stateless and operate on model instances directly.
"""

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError
from django.utils import timezone

from django_pos.orders.models import Order, OrderLine
from django_pos.orders.services.pricing import ZERO, quantize_money
from django_pos.orders.services.transactions import order_transaction
from django_pos.orders.signals import order_refunded

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)


class RefundService:
    """Stateless service for refund operations."""

    @staticmethod
    def refund_order(
        order: Order,
        *,
        reason: str,
        staff_user: "AbstractBaseUser | None" = None,
        notes: str = "",
        line_ids: Iterable[int] | None = None,
    ) -> Decimal:
        """Refund a paid order in full or for selected lines.

        A full refund (``line_ids`` is None) returns ``total - refund_amount``,
        flags every line refunded and moves the order to REFUNDED. A partial
        refund returns ``frozen_price * quantity`` of each selected line that
        is neither voided nor already refunded, before tax, and leaves the
        order PAID.

        Args:
            order: The order to refund. Must be PAID.
            reason: Why the refund was issued; required.
            staff_user: Optional staff user issuing the refund.
            notes: Free-form notes stored on the order.
            line_ids: Primary keys of the lines to refund, or None for a
                full refund.

        Returns:
            The amount refunded by this call.

        Raises:
            ValidationError: If the order is not paid, no reason is given, or
                nothing is left to refund.
            OrderProcessingError: If the database write fails.
        """
        if not reason.strip():
            raise ValidationError("A refund reason is required.")

        with order_transaction("refund order"):
            order = Order.objects.select_for_update().get(pk=order.pk)
            if order.status != Order.Status.PAID:
                raise ValidationError(
                    f"Only paid orders can be refunded. This order is '{order.get_status_display()}'."
                )

            if line_ids is None:
                amount = order.total - order.refund_amount
                if amount <= ZERO:
                    raise ValidationError("Nothing left to refund on this order.")
                order.lines.filter(refunded=False).update(refunded=True)
                order.status = Order.Status.REFUNDED
            else:
                lines = list(
                    order.lines.filter(pk__in=list(line_ids), refunded=False).exclude(status=OrderLine.Status.VOIDED)
                )
                if not lines:
                    raise ValidationError("No refundable items selected.")
                amount = quantize_money(sum((line.line_total for line in lines), ZERO))
                amount = min(amount, order.total - order.refund_amount)
                OrderLine.objects.filter(pk__in=[line.pk for line in lines]).update(refunded=True)

            order.refund_amount += amount
            order.refund_reason = reason
            order.refund_notes = notes
            order.refunded_by = staff_user
            order.refunded_at = timezone.now()
            order.save(
                update_fields=[
                    "status",
                    "refund_amount",
                    "refund_reason",
                    "refund_notes",
                    "refunded_by",
                    "refunded_at",
                    "updated_at",
                ]
            )
            order_refunded.send(sender=Order, order=order, amount=amount)

        logger.info(
            "Refund of %s issued for order %s (new status: %s)",
            amount,
            order.reference,
            order.status,
        )
        return amount
