"""Typed configuration for django-pos.

Reads a single ``DJANGO_POS`` dict from Django settings and exposes it as a
frozen dataclass with sensible defaults.

Usage::

    from django_pos.settings import get_config

    config = get_config()
    config.tax_rate
    config.currency_symbol
"""

import functools
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.test.signals import setting_changed


@dataclass(frozen=True, slots=True)
class PosConfig:
    """Top-level django-pos configuration."""

    tax_rate: Decimal = Decimal("0.07")
    currency: str = "USD"
    currency_symbol: str = "$"
    order_reference_prefix: str = "ORD"


@functools.lru_cache(maxsize=1)
def get_config() -> PosConfig:
    """Build and return the point-of-sale configuration.

    Reads ``settings.DJANGO_POS`` (a plain dict) and returns a frozen
    :class:`PosConfig`.  The result is cached; the cache is cleared
    automatically when Django's ``setting_changed`` signal fires (e.g. inside
    ``override_settings``).
    """
    raw = getattr(settings, "DJANGO_POS", {})
    if not isinstance(raw, Mapping):
        msg = "DJANGO_POS must be a mapping (dict-like object)"
        raise TypeError(msg)
    raw_data = dict(raw)

    if "tax_rate" in raw_data:
        raw_data["tax_rate"] = _coerce_tax_rate(raw_data["tax_rate"])

    config = PosConfig(**raw_data)
    _validate_pos_config(config)
    return config


def _coerce_tax_rate(value: object) -> Decimal:
    """Convert a configured tax rate (str, int, float, or Decimal) to Decimal."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        msg = "DJANGO_POS['tax_rate'] must be a number or numeric string"
        raise TypeError(msg)
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        msg = f"DJANGO_POS['tax_rate'] is not a valid number: {value!r}"
        raise ValueError(msg) from exc


def _validate_pos_config(config: PosConfig) -> None:
    """Validate high-impact configuration values with clear error messages."""
    if not Decimal(0) <= config.tax_rate <= Decimal(1):
        msg = "DJANGO_POS['tax_rate'] must be between 0 and 1"
        raise ValueError(msg)
    if not isinstance(config.currency, str) or not config.currency.strip():
        msg = "DJANGO_POS['currency'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.currency_symbol, str) or not config.currency_symbol.strip():
        msg = "DJANGO_POS['currency_symbol'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.order_reference_prefix, str) or not config.order_reference_prefix.strip():
        msg = "DJANGO_POS['order_reference_prefix'] must be a non-empty string"
        raise ValueError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Clear the cached config when Django settings change during tests."""
    if setting == "DJANGO_POS":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="django_pos.settings.clear_config_cache")
