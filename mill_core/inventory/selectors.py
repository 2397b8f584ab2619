# mill_core/inventory/selectors.py
"""
Tenant-scoped reads over products and movements.

Every function takes a TenantScope, which is the only way to obtain a tenant
filter. Aggregate reads materialize inside ``with_read_retry`` so a transient
driver error is retried once there and not halfway through a metric.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Type, Union
from uuid import UUID

from django.db.models import Count, Q, QuerySet, Sum
from django.db.models.functions import Coalesce

from mill_core.common.exceptions import NotFound, TenantMismatch
from mill_core.common.retry import with_read_retry
from mill_core.iam.scope import TenantScope
from mill_core.inventory.models import Product, StockIn, StockOut

logger = logging.getLogger(__name__)

MovementModel = Union[Type[StockIn], Type[StockOut]]

ZERO = Decimal(0)

PARTY_FIELD = {StockIn: "farmer_name", StockOut: "customer_name"}


@dataclass(frozen=True)
class Totals:
    quantity: Decimal = ZERO
    amount: Decimal = ZERO
    count: int = 0


def _in_range(qs: QuerySet, date_range) -> QuerySet:
    if date_range is None:
        return qs
    # half-open [start, end)
    return qs.filter(date__gte=date_range.start, date__lt=date_range.end)


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _scoped_get(model, scope: TenantScope, obj_id, label: str):
    """
    Same-tenant miss -> NotFound. Row in another tenant -> TenantMismatch.
    """
    try:
        obj_uuid = UUID(str(obj_id))
    except (TypeError, ValueError):
        raise NotFound(f"{label} not found.")

    obj = model.objects.filter(tenant_id=scope.tenant_id, id=obj_uuid).first()
    if obj is not None:
        return obj
    if model.objects.filter(id=obj_uuid).exists():
        logger.warning(
            "cross-tenant %s lookup: user=%s tenant=%s id=%s",
            label.lower(),
            scope.actor.user_id,
            scope.tenant_id,
            obj_uuid,
        )
        raise TenantMismatch()
    raise NotFound(f"{label} not found.")


# -----------------------------
# products
# -----------------------------

def product_qs(*, scope: TenantScope) -> QuerySet[Product]:
    return Product.objects.filter(tenant_id=scope.tenant_id)


def list_products(*, scope: TenantScope, search: str | None = None, category: str | None = None) -> QuerySet[Product]:
    qs = product_qs(scope=scope)
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(sku__icontains=search))
    if category:
        qs = qs.filter(category=category)
    return qs.order_by("name", "id")


def get_product(*, scope: TenantScope, product_id) -> Product:
    return _scoped_get(Product, scope, product_id, "Product")


@with_read_retry
def products_by_id(*, scope: TenantScope) -> Dict[UUID, Product]:
    return {p.id: p for p in product_qs(scope=scope).order_by("name", "id")}


# -----------------------------
# movements
# -----------------------------

def stock_in_qs(*, scope: TenantScope) -> QuerySet[StockIn]:
    return StockIn.objects.filter(tenant_id=scope.tenant_id)


def stock_out_qs(*, scope: TenantScope) -> QuerySet[StockOut]:
    return StockOut.objects.filter(tenant_id=scope.tenant_id)


def movement_qs(model: MovementModel, *, scope: TenantScope) -> QuerySet:
    return model.objects.filter(tenant_id=scope.tenant_id)


def _history(
    model: MovementModel,
    *,
    scope: TenantScope,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    party_name: Optional[str] = None,
    product_id=None,
) -> QuerySet:
    qs = movement_qs(model, scope=scope).select_related("product")
    if date_from:
        qs = qs.filter(date__gte=date_from)
    # inclusive, as typed by a user in a report filter
    if date_to:
        qs = qs.filter(date__lte=date_to)
    if party_name:
        qs = qs.filter(**{f"{PARTY_FIELD[model]}__icontains": party_name})
    if product_id:
        qs = qs.filter(product_id=product_id)
    return qs.order_by("-date", "-created_at")


def stock_in_history(*, scope: TenantScope, farmer_name: str | None = None, **filters) -> QuerySet[StockIn]:
    return _history(StockIn, scope=scope, party_name=farmer_name, **filters)


def stock_out_history(*, scope: TenantScope, customer_name: str | None = None, **filters) -> QuerySet[StockOut]:
    return _history(StockOut, scope=scope, party_name=customer_name, **filters)


def get_stock_in(*, scope: TenantScope, stock_in_id) -> StockIn:
    return _scoped_get(StockIn, scope, stock_in_id, "Stock-in")


def get_stock_out(*, scope: TenantScope, stock_out_id) -> StockOut:
    return _scoped_get(StockOut, scope, stock_out_id, "Stock-out")


def _as_row(m, kind: str) -> dict:
    return {
        "type": kind,
        "id": m.id,
        "date": m.date,
        "product_id": m.product_id,
        "product_name": m.product.name,
        "party_name": m.party_name,
        "party_contact": m.party_contact,
        "vehicle_number": m.vehicle_number,
        "num_of_bags": m.num_of_bags,
        "total_quintals": m.total_quintals,
        "price_per_quintal": m.price_per_quintal,
        "total_price": m.total_price,
        "created_at": m.created_at,
    }


def transaction_history(
    *,
    scope: TenantScope,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    party_name: Optional[str] = None,
    limit: int = 500,
) -> List[dict]:
    """
    Stock-ins and stock-outs in one list, newest business date first.
    """
    ins = _history(StockIn, scope=scope, date_from=date_from, date_to=date_to, party_name=party_name)[:limit]
    outs = _history(StockOut, scope=scope, date_from=date_from, date_to=date_to, party_name=party_name)[:limit]

    rows = [_as_row(m, "in") for m in ins] + [_as_row(m, "out") for m in outs]
    rows.sort(key=lambda r: (r["date"], r["created_at"], str(r["id"])), reverse=True)
    return rows[:limit]


# -----------------------------
# aggregate reads
# -----------------------------

@with_read_retry
def totals_by_product(model: MovementModel, *, scope: TenantScope, date_range=None) -> Dict[UUID, Totals]:
    rows = (
        _in_range(movement_qs(model, scope=scope), date_range)
        .values("product_id")
        .annotate(
            quantity=Coalesce(Sum("total_quintals"), ZERO),
            amount=Coalesce(Sum("total_price"), ZERO),
            count=Count("id"),
        )
        .order_by()
    )
    return {
        r["product_id"]: Totals(quantity=_dec(r["quantity"]), amount=_dec(r["amount"]), count=r["count"])
        for r in rows
    }


@with_read_retry
def totals_by_party(model: MovementModel, *, scope: TenantScope, date_range=None) -> Dict[str, Totals]:
    field = PARTY_FIELD[model]
    rows = (
        _in_range(movement_qs(model, scope=scope), date_range)
        .values(field)
        .annotate(
            quantity=Coalesce(Sum("total_quintals"), ZERO),
            amount=Coalesce(Sum("total_price"), ZERO),
            count=Count("id"),
        )
        .order_by()
    )
    return {
        r[field]: Totals(quantity=_dec(r["quantity"]), amount=_dec(r["amount"]), count=r["count"])
        for r in rows
    }


@with_read_retry
def daily_quantities(model: MovementModel, *, scope: TenantScope, date_range) -> Dict[date, Decimal]:
    rows = (
        _in_range(movement_qs(model, scope=scope), date_range)
        .values("date")
        .annotate(quantity=Coalesce(Sum("total_quintals"), ZERO))
        .order_by()
    )
    out: Dict[date, Decimal] = defaultdict(lambda: ZERO)
    for r in rows:
        out[r["date"]] += _dec(r["quantity"])
    return dict(out)


@with_read_retry
def recent_movements(*, scope: TenantScope, limit: int = 10) -> List[dict]:
    """
    Latest ``limit`` movements of either kind by insertion time, newest first.
    """
    ins = stock_in_qs(scope=scope).select_related("product").order_by("-created_at", "-id")[:limit]
    outs = stock_out_qs(scope=scope).select_related("product").order_by("-created_at", "-id")[:limit]

    rows = [_as_row(m, "in") for m in ins] + [_as_row(m, "out") for m in outs]
    rows.sort(key=lambda r: (r["created_at"], str(r["id"])), reverse=True)
    return rows[:limit]
