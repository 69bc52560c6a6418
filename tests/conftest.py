"""Shared menu fixtures for database tests."""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from django_pos.menu.models import Category, MenuItem, Promotion, PromotionRule

User = get_user_model()


def make_item(category, name, price, **kwargs):
    slug = kwargs.pop("slug", name.lower().replace(" ", "-"))
    return MenuItem.objects.create(category=category, name=name, slug=slug, base_price=Decimal(price), **kwargs)


@pytest.fixture
def mains():
    return Category.objects.create(name="Mains", sort_order=1)


@pytest.fixture
def sides():
    return Category.objects.create(name="Sides", sort_order=2)


@pytest.fixture
def beverages():
    return Category.objects.create(name="Beverages", sort_order=3)


@pytest.fixture
def ice_cream():
    return Category.objects.create(name="Ice Cream", sort_order=4)


@pytest.fixture
def burger(mains):
    return make_item(mains, "Veggie Burger", "16.99")


@pytest.fixture
def fries(sides):
    return make_item(sides, "French Fries", "5.99")


@pytest.fixture
def coke(beverages):
    return make_item(beverages, "Coca-Cola", "3.49")


@pytest.fixture
def vanilla(ice_cream):
    return make_item(ice_cream, "Vanilla Bean", "4.99")


@pytest.fixture
def chocolate(ice_cream):
    return make_item(ice_cream, "Chocolate Fudge", "5.49")


@pytest.fixture
def lunch_special(burger, fries, coke):
    promotion = Promotion.objects.create(
        name="Lunch Special $15",
        promotion_type=Promotion.PromotionType.COMBO,
        value=Decimal("15.00"),
    )
    PromotionRule.objects.create(promotion=promotion, menu_item=burger, is_discounted=False, sort_order=0)
    PromotionRule.objects.create(promotion=promotion, menu_item=fries, sort_order=1)
    PromotionRule.objects.create(promotion=promotion, menu_item=coke, sort_order=2)
    return promotion


@pytest.fixture
def ice_cream_duo(ice_cream):
    promotion = Promotion.objects.create(
        name="Ice Cream Duo (2 for $8)",
        promotion_type=Promotion.PromotionType.COMBO,
        value=Decimal("8.00"),
    )
    PromotionRule.objects.create(promotion=promotion, category=ice_cream, required_quantity=2)
    return promotion


@pytest.fixture
def staff_user():
    return User.objects.create_user(
        username="register",
        email="register@example.com",
        password="testpass123",
        is_staff=True,
    )
