"""Order and order line models for django-pos."""

from decimal import Decimal

from django.conf import settings
from django.db import models


class Order(models.Model):
    """A ticket opened at the register.

    The four money fields always hold the totals of the latest cart
    calculation for the order's non-voided lines, so ``total == subtotal +
    tax`` and ``discount`` is the base value of those lines minus
    ``subtotal``.
    """

    class OrderType(models.TextChoices):
        """Where the order is served."""

        DINE_IN = "dine_in", "Dine In"
        TAKEOUT = "takeout", "Takeout"
        QUICK_SALE = "quick_sale", "Quick Sale"

    class Status(models.TextChoices):
        """Lifecycle states for an order."""

        OPEN = "open", "Open"
        PAID = "paid", "Paid"
        VOID = "void", "Void"
        REFUNDED = "refunded", "Refunded"

    class PaymentMethod(models.TextChoices):
        """How the order is (or will be) settled."""

        CASH = "cash", "Cash"
        CARD_EXTERNAL = "card_external", "Card (external terminal)"
        LATER_PAY = "later_pay", "Pay Later"

    reference = models.CharField(
        max_length=100,
        unique=True,
        help_text='Unique order reference, e.g. "ORD-A1B2C3D4".',
    )
    order_type = models.CharField(
        max_length=20,
        choices=OrderType.choices,
        default=OrderType.DINE_IN,
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.OPEN,
    )
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        blank=True,
        default="",
    )
    customer_name = models.CharField(max_length=200, blank=True, default="")
    customer_phone = models.CharField(max_length=50, blank=True, default="")
    scheduled_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pos_orders",
    )
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    tax = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    refund_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    refund_reason = models.CharField(max_length=200, blank=True, default="")
    refund_notes = models.TextField(blank=True, default="")
    refunded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pos_refunded_orders",
    )
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.reference} ({self.status})"


class OrderLine(models.Model):
    """A priced line on an order.

    ``frozen_price`` is the per-unit price decided when the line was priced.
    It is rewritten when items are added to the still-open order (combos may
    re-allocate across all lines) but never when another line is voided or
    refunded. ``base_price`` snapshots the menu price used for that pricing.
    """

    class Status(models.TextChoices):
        """Kitchen and service states for a line."""

        PENDING = "pending", "Pending"
        READY = "ready", "Ready"
        SERVED = "served", "Served"
        VOIDED = "voided", "Voided"

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    menu_item = models.ForeignKey(
        "pos_menu.MenuItem",
        on_delete=models.PROTECT,
        related_name="order_lines",
    )
    quantity = models.PositiveIntegerField(default=1)
    base_price = models.DecimalField(max_digits=10, decimal_places=2)
    frozen_price = models.DecimalField(max_digits=10, decimal_places=2)
    notes = models.CharField(max_length=500, blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    refunded = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.quantity}x {self.menu_item.name}"

    @property
    def line_total(self) -> Decimal:
        """Return the frozen total for this line (frozen_price * quantity)."""
        return self.frozen_price * self.quantity
