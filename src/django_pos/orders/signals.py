"""Custom signals for the orders app.

Signals:
    order_paid: Sent when an order transitions to PAID status.
        Sender: The ``Order`` class.
        Kwargs:
            order: The ``Order`` instance that was paid.
    order_refunded: Sent after a full or partial refund is recorded.
        Sender: The ``Order`` class.
        Kwargs:
            order: The refunded ``Order`` instance.
            amount: The ``Decimal`` amount refunded by this operation.
"""

from django.dispatch import Signal

order_paid = Signal()
order_refunded = Signal()
