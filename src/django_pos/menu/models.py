"""Menu catalog and promotion models for django-pos."""

from datetime import datetime

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class Category(models.Model):
    """A named group of menu items (e.g. "Mains", "Beverages").

    Categories are the target of category-scoped promotions and combo rules.
    """

    name = models.CharField(max_length=100, unique=True)
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "name"]
        verbose_name_plural = "categories"

    def __str__(self) -> str:
        return self.name


class MenuItem(models.Model):
    """A sellable dish or drink.

    ``base_price`` is the current list price. Orders never reference it after
    the fact: each order line snapshots the base price and its frozen price at
    the moment it is priced, so editing a menu item does not reprice history.
    """

    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name="menu_items",
    )
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    description = models.TextField(blank=True, default="")
    base_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
    )
    is_available = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.base_price})"


class PromotionQuerySet(models.QuerySet):
    """Query helpers for promotions."""

    def currently_active(self, now: datetime | None = None) -> "PromotionQuerySet":
        """Return promotions that are switched on and inside their validity window."""
        now = now or timezone.now()
        return (
            self.filter(is_active=True)
            .filter(models.Q(starts_at__isnull=True) | models.Q(starts_at__lte=now))
            .filter(models.Q(ends_at__isnull=True) | models.Q(ends_at__gte=now))
        )


class Promotion(models.Model):
    """A discount applied automatically at pricing time.

    FIXED and PERCENT promotions discount a single unit and target either one
    menu item (``ITEM`` scope) or a whole category (``CATEGORY`` scope).
    COMBO promotions ignore ``scope`` and the direct targets; their
    :class:`PromotionRule` rows describe the bundle and ``value`` is the bundle
    price.
    """

    class PromotionType(models.TextChoices):
        """How a promotion changes the price."""

        FIXED = "fixed", "Fixed amount off"
        PERCENT = "percent", "Percentage off"
        COMBO = "combo", "Combo bundle price"

    class Scope(models.TextChoices):
        """What a simple promotion targets."""

        ITEM = "item", "Menu item"
        CATEGORY = "category", "Category"

    name = models.CharField(max_length=200)
    promotion_type = models.CharField(
        max_length=10,
        choices=PromotionType.choices,
        default=PromotionType.FIXED,
    )
    value = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        help_text="Amount off (FIXED), percentage 0-100 (PERCENT), or bundle price (COMBO).",
    )
    scope = models.CharField(
        max_length=10,
        choices=Scope.choices,
        default=Scope.ITEM,
    )
    menu_item = models.ForeignKey(
        MenuItem,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="promotions",
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="promotions",
    )
    is_active = models.BooleanField(default=True)
    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PromotionQuerySet.as_manager()

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.name} ({self.get_promotion_type_display()})"

    @property
    def is_combo(self) -> bool:
        """Return True for COMBO promotions."""
        return self.promotion_type == self.PromotionType.COMBO

    @property
    def is_currently_active(self) -> bool:
        """Check whether this promotion applies right now.

        A promotion is active when ``is_active`` is set and the current time
        falls within the optional ``starts_at`` / ``ends_at`` window.
        """
        if not self.is_active:
            return False
        now = timezone.now()
        if self.starts_at and now < self.starts_at:
            return False
        return not (self.ends_at and now > self.ends_at)


class PromotionRule(models.Model):
    """One requirement of a COMBO promotion.

    A rule asks for ``required_quantity`` units of a specific menu item or of
    any item in a category. Units matched by a rule with ``is_discounted`` set
    are rewards and share the bundle price; the others are triggers that
    qualify the combo but keep their full price.
    """

    promotion = models.ForeignKey(
        Promotion,
        on_delete=models.CASCADE,
        related_name="rules",
    )
    name = models.CharField(max_length=200, blank=True, default="")
    required_quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    menu_item = models.ForeignKey(
        MenuItem,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="promotion_rules",
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="promotion_rules",
    )
    is_discounted = models.BooleanField(
        default=True,
        help_text="Reward units share the bundle price; trigger units stay at full price.",
    )
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "id"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(menu_item__isnull=False, category__isnull=True)
                    | models.Q(menu_item__isnull=True, category__isnull=False)
                ),
                name="menu_promotionrule_exactly_one_target",
            ),
        ]

    def __str__(self) -> str:
        target = self.menu_item or self.category
        return f"{self.required_quantity}x {target}"
