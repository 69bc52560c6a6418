"""TOML loader for menu bootstrap configuration.

Loads and validates a menu TOML file (see ``examples/menu.toml``) so that
categories, menu items, and promotions can be created programmatically.
"""

import re
import tomllib
from decimal import Decimal
from pathlib import Path
from typing import Any

_REQUIRED_CATEGORY_FIELDS: set[str] = {"name"}
_REQUIRED_ITEM_FIELDS: set[str] = {"name", "price", "category"}
_REQUIRED_PROMOTION_FIELDS: set[str] = {"name", "type", "value"}

_PROMOTION_TYPES: set[str] = {"fixed", "percent", "combo"}
_PROMOTION_SCOPES: set[str] = {"item", "category"}

_SLUG_RE = re.compile(r"[^\w\s-]")
_WHITESPACE_RE = re.compile(r"[-\s]+")


def _slugify(value: str) -> str:
    """Convert a string to a URL-friendly slug.

    Args:
        value: The string to slugify.

    Returns:
        Lowercase, hyphen-separated slug.
    """
    value = _SLUG_RE.sub("", value.lower())
    return _WHITESPACE_RE.sub("-", value).strip("-")


def load_menu_config(path: str | Path) -> dict[str, Any]:
    """Load and validate a menu TOML configuration file.

    Args:
        path: Filesystem path to the TOML file.

    Returns:
        The ``menu`` mapping from the parsed TOML. Prices and promotion values
        are ``Decimal``, item slugs are derived from ``name`` when missing,
        and optional fields are filled with their defaults.

    Raises:
        FileNotFoundError: If *path* does not exist.
        TypeError: If a table or field has the wrong type.
        ValueError: If required keys or fields are missing, references do not
            resolve, or the file is not valid TOML.
    """
    path = Path(path)
    if not path.exists():
        msg = f"Menu config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as fh:
        try:
            data: dict[str, Any] = tomllib.load(fh, parse_float=Decimal)
        except tomllib.TOMLDecodeError as exc:
            msg = f"Invalid TOML in {path}: {exc}"
            raise ValueError(msg) from exc

    if "menu" not in data:
        msg = "Missing required [menu] table in config file"
        raise ValueError(msg)

    menu = data["menu"]
    _validate_mapping(menu, set(), "menu")

    categories = _validate_list(menu, "categories", _REQUIRED_CATEGORY_FIELDS, must_exist=True)
    _validate_unique(categories, "name", "menu.categories")
    for idx, category in enumerate(categories):
        category.setdefault("sort_order", idx)

    category_names = {category["name"] for category in categories}

    items = _validate_list(menu, "items", _REQUIRED_ITEM_FIELDS, must_exist=True)
    for idx, item in enumerate(items):
        label = f"menu.items[{idx}]"
        item.setdefault("slug", _slugify(item["name"]))
        item["price"] = _coerce_amount(item["price"], f"{label}.price")
        if item["category"] not in category_names:
            msg = f"{label}.category references unknown category '{item['category']}'"
            raise ValueError(msg)
        item.setdefault("description", "")
        item.setdefault("available", True)
        item.setdefault("sort_order", idx)
    _validate_unique(items, "slug", "menu.items")

    item_slugs = {item["slug"] for item in items}

    promotions = _validate_list(menu, "promotions", _REQUIRED_PROMOTION_FIELDS)
    for idx, promotion in enumerate(promotions):
        _validate_promotion(promotion, f"menu.promotions[{idx}]", item_slugs, category_names)
    _validate_unique(promotions, "name", "menu.promotions")

    return menu


def _validate_promotion(
    promotion: dict[str, Any],
    label: str,
    item_slugs: set[str],
    category_names: set[str],
) -> None:
    """Validate one promotion entry in place, filling in defaults."""
    promotion_type = promotion["type"]
    if promotion_type not in _PROMOTION_TYPES:
        msg = f"{label}.type must be one of: {', '.join(sorted(_PROMOTION_TYPES))}"
        raise ValueError(msg)

    promotion["value"] = _coerce_amount(promotion["value"], f"{label}.value")
    if promotion_type == "percent" and promotion["value"] > 100:
        msg = f"{label}.value must be at most 100 for percent promotions"
        raise ValueError(msg)

    promotion.setdefault("active", True)
    promotion.setdefault("starts", None)
    promotion.setdefault("ends", None)

    if promotion_type == "combo":
        rules = _validate_list(promotion, "rules", set(), must_exist=True, label=f"{label}.rules")
        for rule_idx, rule in enumerate(rules):
            rule_label = f"{label}.rules[{rule_idx}]"
            _validate_target(rule, rule_label, item_slugs, category_names)
            quantity = rule.setdefault("quantity", 1)
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
                msg = f"{rule_label}.quantity must be a positive integer"
                raise ValueError(msg)
            rule.setdefault("discounted", True)
            rule.setdefault("name", "")
        return

    scope = promotion.setdefault("scope", "item")
    if scope not in _PROMOTION_SCOPES:
        msg = f"{label}.scope must be one of: {', '.join(sorted(_PROMOTION_SCOPES))}"
        raise ValueError(msg)
    _validate_target(promotion, label, item_slugs, category_names)
    if (scope == "item") != ("item" in promotion):
        msg = f"{label} with scope '{scope}' must reference a {scope}"
        raise ValueError(msg)


def _validate_target(
    entry: dict[str, Any],
    label: str,
    item_slugs: set[str],
    category_names: set[str],
) -> None:
    """Ensure *entry* references exactly one known item slug or category name."""
    has_item = "item" in entry
    has_category = "category" in entry
    if has_item == has_category:
        msg = f"{label} must reference exactly one of: item, category"
        raise ValueError(msg)
    if has_item and entry["item"] not in item_slugs:
        msg = f"{label}.item references unknown item '{entry['item']}'"
        raise ValueError(msg)
    if has_category and entry["category"] not in category_names:
        msg = f"{label}.category references unknown category '{entry['category']}'"
        raise ValueError(msg)


def _coerce_amount(value: object, label: str) -> Decimal:
    """Return *value* as a non-negative Decimal.

    Raises:
        TypeError: If *value* is not a number.
        ValueError: If *value* is negative.
    """
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        msg = f"{label} must be a number, got {type(value).__name__}"
        raise TypeError(msg)
    amount = Decimal(value)
    if amount < 0:
        msg = f"{label} must not be negative"
        raise ValueError(msg)
    return amount


def _validate_unique(items: list[dict[str, Any]], key: str, label: str) -> None:
    """Ensure each item has a unique, non-empty string under *key*."""
    seen: set[str] = set()
    duplicates: set[str] = set()

    for idx, item in enumerate(items):
        value = item.get(key)
        if not isinstance(value, str) or not value:
            msg = f"{label}[{idx}].{key} must be a non-empty string"
            raise ValueError(msg)
        if value in seen:
            duplicates.add(value)
        seen.add(value)

    if duplicates:
        msg = f"{label} has duplicate {key}s: {', '.join(sorted(duplicates))}"
        raise ValueError(msg)


def _validate_list(
    parent: dict[str, Any],
    key: str,
    required_fields: set[str],
    *,
    must_exist: bool = False,
    label: str | None = None,
) -> list[dict[str, Any]]:
    """Validate an optional list of mappings and return it.

    Args:
        parent: The mapping holding the list.
        key: The key to validate (e.g. ``"items"``, ``"promotions"``).
        required_fields: Fields each item must have.
        must_exist: If ``True``, the key must be present and non-empty.
        label: Dotted path used in error messages. Defaults to ``menu.<key>``.

    Returns:
        The validated list, or an empty list when the key is absent.
    """
    label = label or f"menu.{key}"
    items = parent.get(key)

    if items is None:
        if must_exist:
            msg = f"{label} must be a non-empty list"
            raise ValueError(msg)
        parent[key] = []
        return parent[key]

    if not isinstance(items, list) or (must_exist and len(items) == 0):
        msg = f"{label} must be a non-empty list"
        raise ValueError(msg)

    for idx, item in enumerate(items):
        _validate_mapping(item, required_fields, f"{label}[{idx}]")

    return items


def _validate_mapping(mapping: object, required: set[str], label: str) -> None:
    """Validate that *mapping* is a dict containing all *required* keys.

    Args:
        mapping: The value to validate.
        required: Set of required key names.
        label: Human-readable context for error messages.

    Raises:
        TypeError: If *mapping* is not a dict.
        ValueError: If *mapping* is missing required keys.
    """
    if not isinstance(mapping, dict):
        msg = f"{label} must be a mapping, got {type(mapping).__name__}"
        raise TypeError(msg)
    missing = required - mapping.keys()
    if missing:
        msg = f"{label} is missing required fields: {', '.join(sorted(missing))}"
        raise ValueError(msg)
