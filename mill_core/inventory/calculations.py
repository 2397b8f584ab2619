# mill_core/inventory/calculations.py
"""
Write-time derivation of movement totals.

    total_quintals = num_of_bags * net_weight_per_bag_kg / 100
    total_price    = total_quintals * price_per_quintal

Pure Decimal arithmetic. Inputs carrying more precision than the columns can
store are rejected instead of rounded, so the stored equalities hold exactly.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from rest_framework.exceptions import ValidationError

from mill_core.inventory.models import AMOUNT_PLACES, PRICE_PLACES, QUINTAL_PLACES, WEIGHT_PLACES

KG_PER_QUINTAL = Decimal(100)


@dataclass(frozen=True)
class MovementTotals:
    total_quintals: Decimal
    total_price: Decimal


def to_decimal(value, *, field: str, places: int) -> Decimal:
    """
    Parse ``value`` as a positive Decimal with at most ``places`` fractional digits.
    Floats go through str() so 0.1 means 0.1.
    """
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError({field: "This field is required."})
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError({field: "A valid number is required."})
    if not d.is_finite():
        raise ValidationError({field: "A valid number is required."})
    if d <= 0:
        raise ValidationError({field: "Must be greater than 0."})
    if d != d.quantize(Decimal(1).scaleb(-places)):
        raise ValidationError({field: f"Ensure that there are no more than {places} decimal places."})
    return d


def to_bag_count(value) -> int:
    if isinstance(value, bool):
        raise ValidationError({"num_of_bags": "A valid integer is required."})
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise ValidationError({"num_of_bags": "A valid integer is required."})
    if isinstance(value, (float, Decimal)) and n != value:
        raise ValidationError({"num_of_bags": "A valid integer is required."})
    if n <= 0:
        raise ValidationError({"num_of_bags": "Must be greater than 0."})
    return n


def compute_totals(num_of_bags, net_weight_per_bag_kg, price_per_quintal) -> MovementTotals:
    bags = to_bag_count(num_of_bags)
    weight = to_decimal(net_weight_per_bag_kg, field="net_weight_per_bag_kg", places=WEIGHT_PLACES)
    price = to_decimal(price_per_quintal, field="price_per_quintal", places=PRICE_PLACES)

    quintals = (bags * weight / KG_PER_QUINTAL).quantize(Decimal(1).scaleb(-QUINTAL_PLACES))
    amount = (quintals * price).quantize(Decimal(1).scaleb(-AMOUNT_PLACES))
    return MovementTotals(total_quintals=quintals, total_price=amount)
