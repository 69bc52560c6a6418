"""Management command to bootstrap a menu from a TOML configuration file."""

from datetime import date, datetime
from typing import Any

from django.core.management.base import BaseCommand, CommandError, CommandParser
from django.db import transaction
from django.utils import timezone

from django_pos.menu.models import Category, MenuItem, Promotion, PromotionRule
from django_pos.menu_loader import load_menu_config

# Mapping from TOML short field names to Django model field names.
_ITEM_FIELD_MAP: dict[str, str] = {
    "name": "name",
    "price": "base_price",
    "description": "description",
    "available": "is_available",
    "sort_order": "sort_order",
}

_PROMOTION_FIELD_MAP: dict[str, str] = {
    "type": "promotion_type",
    "value": "value",
    "active": "is_active",
}


def _map_fields(data: dict[str, Any], field_map: dict[str, str]) -> dict[str, Any]:
    """Map TOML config keys to Django model field names.

    Args:
        data: Raw config data with short field names.
        field_map: Mapping of config key -> model field name.

    Returns:
        Dict with model field names as keys.
    """
    result: dict[str, Any] = {}
    for config_key, model_field in field_map.items():
        if config_key in data:
            result[model_field] = data[config_key]
    return result


def _parse_moment(value: date | datetime | None) -> datetime | None:
    """Turn a TOML date or datetime into an aware datetime.

    Bare dates become midnight and naive datetimes are interpreted in the
    current Django time zone.
    """
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.combine(value, datetime.min.time())
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


class Command(BaseCommand):
    """Bootstrap the menu from a TOML configuration file.

    Parses the given TOML file, validates its structure, and creates (or
    updates) the corresponding ``Category``, ``MenuItem``, ``Promotion`` and
    ``PromotionRule`` database records.

    Usage::

        manage.py bootstrap_menu --config menu.toml
        manage.py bootstrap_menu --config menu.toml --update
        manage.py bootstrap_menu --config menu.toml --dry-run
    """

    help = "Create or update menu categories, items, and promotions from a TOML config file."

    def add_arguments(self, parser: CommandParser) -> None:
        """Define the command-line arguments accepted by this command.

        Args:
            parser: The argument parser to configure.
        """
        parser.add_argument(
            "--config",
            required=True,
            help="Path to the menu TOML configuration file.",
        )
        parser.add_argument(
            "--update",
            action="store_true",
            default=False,
            help="Update existing records instead of skipping them.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            default=False,
            help="Validate the config and print what would be created without saving.",
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the bootstrap command.

        Args:
            *args: Positional arguments (unused).
            **options: Parsed command-line options.
        """
        config_path: str = options["config"]
        update: bool = options["update"]
        dry_run: bool = options["dry_run"]
        verbosity: int = options["verbosity"]

        try:
            menu = load_menu_config(config_path)
        except (FileNotFoundError, TypeError, ValueError) as exc:
            raise CommandError(str(exc)) from exc

        if dry_run:
            self._print_dry_run(menu)
            return

        with transaction.atomic():
            categories, category_results = self._bootstrap_categories(menu["categories"], update=update)
            items, item_results = self._bootstrap_items(menu["items"], categories, update=update)
            promotion_results = self._bootstrap_promotions(menu["promotions"], categories, items, update=update)

        results = {
            "categories": category_results,
            "items": item_results,
            "promotions": promotion_results,
        }
        self._print_summary(results, verbosity)

    def _bootstrap_categories(
        self,
        categories_data: list[dict[str, Any]],
        *,
        update: bool,
    ) -> tuple[dict[str, Category], tuple[list[Category], list[Category]]]:
        """Create or update Category records matched by name.

        Returns:
            A mapping of category name to instance (covering skipped rows
            too) and a tuple of (created, updated).
        """
        by_name: dict[str, Category] = {}
        created: list[Category] = []
        updated: list[Category] = []

        for category_data in categories_data:
            name = category_data["name"]
            existing = Category.objects.filter(name=name).first()
            if existing and update:
                existing.sort_order = category_data["sort_order"]
                existing.save()
                self.stdout.write(self.style.SUCCESS(f"  Updated category: {existing.name}"))
                updated.append(existing)
                by_name[name] = existing
            elif existing:
                self.stdout.write(self.style.WARNING(f"  Category '{name}' already exists, skipping."))
                by_name[name] = existing
            else:
                category = Category.objects.create(name=name, sort_order=category_data["sort_order"])
                self.stdout.write(self.style.SUCCESS(f"  Created category: {category.name}"))
                created.append(category)
                by_name[name] = category

        return by_name, (created, updated)

    def _bootstrap_items(
        self,
        items_data: list[dict[str, Any]],
        categories: dict[str, Category],
        *,
        update: bool,
    ) -> tuple[dict[str, MenuItem], tuple[list[MenuItem], list[MenuItem]]]:
        """Create or update MenuItem records matched by slug.

        Args:
            items_data: List of item mappings from the config file.
            categories: Category instances keyed by name.
            update: When ``True``, update existing items matched by slug
                instead of skipping them.

        Returns:
            A mapping of slug to instance and a tuple of (created, updated).
        """
        by_slug: dict[str, MenuItem] = {}
        created: list[MenuItem] = []
        updated: list[MenuItem] = []

        for item_data in items_data:
            slug = item_data["slug"]
            fields = _map_fields(item_data, _ITEM_FIELD_MAP)
            fields["category"] = categories[item_data["category"]]

            existing = MenuItem.objects.filter(slug=slug).first()
            if existing and update:
                for attr, value in fields.items():
                    setattr(existing, attr, value)
                existing.save()
                self.stdout.write(self.style.SUCCESS(f"  Updated item: {existing.name}"))
                updated.append(existing)
                by_slug[slug] = existing
            elif existing:
                self.stdout.write(self.style.WARNING(f"  Item '{slug}' already exists, skipping."))
                by_slug[slug] = existing
            else:
                item = MenuItem.objects.create(slug=slug, **fields)
                self.stdout.write(self.style.SUCCESS(f"  Created item: {item.name}"))
                created.append(item)
                by_slug[slug] = item

        return by_slug, (created, updated)

    def _bootstrap_promotions(
        self,
        promotions_data: list[dict[str, Any]],
        categories: dict[str, Category],
        items: dict[str, MenuItem],
        *,
        update: bool,
    ) -> tuple[list[Promotion], list[Promotion]]:
        """Create or update Promotion records (and their rules) matched by name.

        Updating a combo replaces its rules with the ones in the file.

        Returns:
            A tuple of (created, updated).
        """
        created: list[Promotion] = []
        updated: list[Promotion] = []

        for promotion_data in promotions_data:
            name = promotion_data["name"]
            fields = _map_fields(promotion_data, _PROMOTION_FIELD_MAP)
            fields["starts_at"] = _parse_moment(promotion_data["starts"])
            fields["ends_at"] = _parse_moment(promotion_data["ends"])
            if promotion_data["type"] == Promotion.PromotionType.COMBO:
                fields.update(scope=Promotion.Scope.ITEM, menu_item=None, category=None)
            else:
                fields["scope"] = promotion_data["scope"]
                fields["menu_item"] = items.get(promotion_data.get("item", ""))
                fields["category"] = categories.get(promotion_data.get("category", ""))

            existing = Promotion.objects.filter(name=name).first()
            if existing and update:
                for attr, value in fields.items():
                    setattr(existing, attr, value)
                existing.save()
                existing.rules.all().delete()
                self._create_rules(existing, promotion_data.get("rules", []), categories, items)
                self.stdout.write(self.style.SUCCESS(f"  Updated promotion: {existing.name}"))
                updated.append(existing)
            elif existing:
                self.stdout.write(self.style.WARNING(f"  Promotion '{name}' already exists, skipping."))
            else:
                promotion = Promotion.objects.create(name=name, **fields)
                self._create_rules(promotion, promotion_data.get("rules", []), categories, items)
                self.stdout.write(self.style.SUCCESS(f"  Created promotion: {promotion.name}"))
                created.append(promotion)

        return created, updated

    @staticmethod
    def _create_rules(
        promotion: Promotion,
        rules_data: list[dict[str, Any]],
        categories: dict[str, Category],
        items: dict[str, MenuItem],
    ) -> None:
        """Create the combo rules of *promotion* in file order."""
        PromotionRule.objects.bulk_create(
            [
                PromotionRule(
                    promotion=promotion,
                    name=rule_data["name"],
                    required_quantity=rule_data["quantity"],
                    menu_item=items.get(rule_data.get("item", "")),
                    category=categories.get(rule_data.get("category", "")),
                    is_discounted=rule_data["discounted"],
                    sort_order=position,
                )
                for position, rule_data in enumerate(rules_data)
            ]
        )

    def _print_dry_run(self, menu: dict[str, Any]) -> None:
        """Print a preview of what would be created without touching the database.

        Args:
            menu: The ``menu`` table from the TOML file.
        """
        self.stdout.write(self.style.MIGRATE_HEADING("\n[DRY RUN] No database changes will be made.\n"))

        self.stdout.write(self.style.MIGRATE_HEADING(f"Categories ({len(menu['categories'])}):"))
        for idx, category in enumerate(menu["categories"]):
            self.stdout.write(f"  [{idx}] {category['name']}")

        self.stdout.write(self.style.MIGRATE_HEADING(f"\nItems ({len(menu['items'])}):"))
        for idx, item in enumerate(menu["items"]):
            self.stdout.write(f"  [{idx}] {item['name']} ({item['slug']}) ${item['price']} in {item['category']}")

        if menu["promotions"]:
            self.stdout.write(self.style.MIGRATE_HEADING(f"\nPromotions ({len(menu['promotions'])}):"))
            for idx, promotion in enumerate(menu["promotions"]):
                self.stdout.write(f"  [{idx}] {promotion['name']} ({promotion['type']} {promotion['value']})")
                for rule in promotion.get("rules", []):
                    target = rule.get("item") or rule.get("category")
                    reward = "" if rule["discounted"] else " (full price)"
                    self.stdout.write(f"        {rule['quantity']}x {target}{reward}")

        self.stdout.write("")

    def _print_summary(
        self,
        results: dict[str, tuple[list[Any], list[Any]]],
        verbosity: int,
    ) -> None:
        """Print a summary of all bootstrap operations performed.

        Args:
            results: Mapping of record kind to (created, updated) lists.
            verbosity: The verbosity level from the command options.
        """
        self.stdout.write("")
        self.stdout.write(self.style.MIGRATE_HEADING("Bootstrap summary:"))
        for label, (created, updated) in results.items():
            self.stdout.write(f"  {label.capitalize()} created:  {len(created)}")
            self.stdout.write(f"  {label.capitalize()} updated:  {len(updated)}")

        if verbosity >= 2:
            for created, updated in results.values():
                for record in created:
                    self.stdout.write(f"    + {record.name}")
                for record in updated:
                    self.stdout.write(f"    ~ {record.name}")

        self.stdout.write(self.style.SUCCESS("\nDone."))
