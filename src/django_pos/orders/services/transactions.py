"""Transaction wrapper shared by the order, payment, and refund services."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from django.db import DatabaseError, transaction

logger = logging.getLogger(__name__)


class OrderProcessingError(Exception):
    """An order mutation failed in the database and was rolled back."""


@contextmanager
def order_transaction(action: str) -> Iterator[None]:
    """Run a block atomically, reporting database failures generically.

    Business-rule errors (``ValidationError``) raised inside the block pass
    through untouched. Any ``DatabaseError`` rolls the block back, is logged,
    and is re-raised as :class:`OrderProcessingError`.

    Args:
        action: Short description used in the log and error message, e.g.
            ``"create order"``.

    Raises:
        OrderProcessingError: If the database rejected any write or read.
    """
    try:
        with transaction.atomic():
            yield
    except DatabaseError as exc:
        logger.exception("Database error while trying to %s", action)
        msg = f"Failed to {action}. Please try again."
        raise OrderProcessingError(msg) from exc
