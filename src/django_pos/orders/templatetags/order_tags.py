"""Template tags and filters for the orders app."""

from decimal import Decimal

from django import template

from django_pos.orders.services.pricing import quantize_money
from django_pos.settings import get_config

register = template.Library()


@register.filter
def format_currency(amount: Decimal | None) -> str:
    """Format a decimal amount with the configured currency symbol.

    Handles ``None`` gracefully by treating it as zero. The symbol comes from
    ``DJANGO_POS["currency_symbol"]``.

    Usage in templates::

        {% load order_tags %}
        {{ order.total|format_currency }}

    Args:
        amount: The monetary amount, or ``None``.

    Returns:
        A formatted string such as ``"$10.00"``.
    """
    if amount is None:
        amount = Decimal("0.00")
    return f"{get_config().currency_symbol}{quantize_money(Decimal(amount)):.2f}"
