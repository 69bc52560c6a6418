"""Django app configuration for the menu app."""

from django.apps import AppConfig


class DjangoPosMenuConfig(AppConfig):
    """Configuration for the menu app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "django_pos.menu"
    label = "pos_menu"
    verbose_name = "Menu"
