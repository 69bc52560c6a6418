"""Django app configuration for the orders app."""

from django.apps import AppConfig


class DjangoPosOrdersConfig(AppConfig):
    """Configuration for the orders app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_pos.orders"
    label = "pos_orders"
    verbose_name = "Orders"
