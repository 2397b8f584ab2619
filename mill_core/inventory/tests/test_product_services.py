from decimal import Decimal

import pytest
from rest_framework.exceptions import ValidationError

from mill_core.common.exceptions import Unauthorized
from mill_core.inventory.models import DEFAULT_CATEGORY, DEFAULT_UNIT
from mill_core.inventory.services import ProductService

pytestmark = pytest.mark.django_db


def test_defaults(product):
    assert product.category == DEFAULT_CATEGORY
    assert product.unit == DEFAULT_UNIT
    assert product.price_per_quintal == Decimal("2200.00")


def test_sku_is_unique_per_tenant_only(operator, other_operator, product):
    with pytest.raises(ValidationError):
        ProductService.create(actor=operator, name="Dup", sku=product.sku, price_per_quintal="1")

    p = ProductService.create(actor=other_operator, name="Same sku elsewhere", sku=product.sku, price_per_quintal="1")
    assert p.sku == product.sku


def test_category_is_fixed(operator, product):
    with pytest.raises(ValidationError):
        ProductService.update(actor=operator, product_id=product.id, changes={"category": "Rice"})


def test_update_price_and_name(operator, product):
    p = ProductService.update(actor=operator, product_id=product.id, changes={"name": "Sona", "price_per_quintal": "2300.50"})

    assert p.name == "Sona"
    assert p.price_per_quintal == Decimal("2300.50")


def test_price_precision(operator):
    with pytest.raises(ValidationError):
        ProductService.create(actor=operator, name="X", sku="X", price_per_quintal="10.005")


def test_viewer_cannot_create(viewer):
    with pytest.raises(Unauthorized):
        ProductService.create(actor=viewer, name="X", sku="X", price_per_quintal="10")
