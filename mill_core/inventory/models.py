# mill_core/inventory/models.py
from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from mill_core.common.models import TenantScopedModel

DEFAULT_CATEGORY = "Paddy"
DEFAULT_UNIT = "quintal"

# scales chosen so the derived totals are exact:
#   bags * kg(3dp) / 100 -> 5dp quintals;  quintals(5dp) * price(2dp) -> 7dp
WEIGHT_PLACES = 3
PRICE_PLACES = 2
QUINTAL_PLACES = 5
AMOUNT_PLACES = 7


class Product(TenantScopedModel):
    name = models.CharField(max_length=255)
    sku = models.CharField(max_length=64)

    # fixed after creation (enforced in ProductService)
    category = models.CharField(max_length=64, default=DEFAULT_CATEGORY)
    unit = models.CharField(max_length=32, default=DEFAULT_UNIT)

    price_per_quintal = models.DecimalField(
        max_digits=12,
        decimal_places=PRICE_PLACES,
        validators=[MinValueValidator(Decimal("0.01"))],
    )

    class Meta:
        db_table = "inventory_product"
        constraints = [
            models.UniqueConstraint(fields=["tenant", "sku"], name="uq_product_tenant_sku"),
        ]
        indexes = [
            models.Index(fields=["tenant", "name"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.sku})"


class Movement(TenantScopedModel):
    """
    A stock movement. Totals are derived once at write time and never touched again:
    rows are insert-only, corrections are made with a compensating movement.
    """
    date = models.DateField()
    vehicle_number = models.CharField(max_length=50)

    num_of_bags = models.PositiveIntegerField()
    net_weight_per_bag_kg = models.DecimalField(max_digits=10, decimal_places=WEIGHT_PLACES)
    # copied from the product at transaction time
    price_per_quintal = models.DecimalField(max_digits=12, decimal_places=PRICE_PLACES)

    total_quintals = models.DecimalField(max_digits=18, decimal_places=QUINTAL_PLACES)
    total_price = models.DecimalField(max_digits=24, decimal_places=AMOUNT_PLACES)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError(f"{type(self).__name__} rows are immutable.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError(f"{type(self).__name__} rows cannot be deleted.")


class StockIn(Movement):
    """Purchase from a farmer."""
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="stock_ins")

    farmer_name = models.CharField(max_length=255)
    farmer_contact = models.CharField(max_length=20)

    class Meta:
        db_table = "inventory_stock_in"
        indexes = [
            models.Index(fields=["tenant", "date"], name="stock_in_tenant_date_idx"),
            models.Index(fields=["tenant", "product"], name="stock_in_tenant_product_idx"),
            models.Index(fields=["tenant", "farmer_name"], name="stock_in_tenant_farmer_idx"),
            models.Index(fields=["tenant", "created_at"], name="stock_in_tenant_created_idx"),
        ]

    @property
    def party_name(self) -> str:
        return self.farmer_name

    @property
    def party_contact(self) -> str:
        return self.farmer_contact


class StockOut(Movement):
    """Sale to a customer."""
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="stock_outs")

    customer_name = models.CharField(max_length=255)
    customer_contact = models.CharField(max_length=20)

    class Meta:
        db_table = "inventory_stock_out"
        indexes = [
            models.Index(fields=["tenant", "date"], name="stock_out_tenant_date_idx"),
            models.Index(fields=["tenant", "product"], name="stock_out_tenant_product_idx"),
            models.Index(fields=["tenant", "customer_name"], name="stock_out_tenant_customer_idx"),
            models.Index(fields=["tenant", "created_at"], name="stock_out_tenant_created_idx"),
        ]

    @property
    def party_name(self) -> str:
        return self.customer_name

    @property
    def party_contact(self) -> str:
        return self.customer_contact
