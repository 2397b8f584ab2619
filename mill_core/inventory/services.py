# mill_core/inventory/services.py
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError

from mill_core.audit.services import AuditService
from mill_core.common.events import PRODUCT_UPDATED, TRANSACTION_CREATED, get_event_bus
from mill_core.iam.authorization import Actor, authorize
from mill_core.iam.roles import Action
from mill_core.iam.scope import TenantScope, tenant_scope
from mill_core.inventory.calculations import compute_totals, to_bag_count, to_decimal
from mill_core.inventory.models import (
    DEFAULT_CATEGORY,
    DEFAULT_UNIT,
    PRICE_PLACES,
    WEIGHT_PLACES,
    Product,
    StockIn,
    StockOut,
)
from mill_core.inventory.selectors import get_product, movement_qs

logger = logging.getLogger(__name__)


def _publish(tenant_id, event_name: str, payload: Dict[str, Any]) -> None:
    try:
        get_event_bus().publish(tenant_id, event_name, payload)
    except Exception:
        # the write is already committed; a lost notification only delays a refresh
        logger.exception("failed to publish %s for tenant %s", event_name, tenant_id)


def publish_on_commit(tenant_id, event_name: str, payload: Dict[str, Any]) -> None:
    transaction.on_commit(lambda: _publish(tenant_id, event_name, payload))


def _check_available(scope: TenantScope, product: Product, quantity) -> None:
    """
    Refuse a sale larger than the product's stock. The product row lock
    serializes concurrent sales of the same product.
    """
    Product.objects.select_for_update().filter(id=product.id).first()

    total_in = movement_qs(StockIn, scope=scope).filter(product_id=product.id).aggregate(q=Sum("total_quintals"))["q"]
    total_out = movement_qs(StockOut, scope=scope).filter(product_id=product.id).aggregate(q=Sum("total_quintals"))["q"]
    available = Decimal(str(total_in or 0)) - Decimal(str(total_out or 0))
    if quantity > available:
        raise ValidationError(
            {"num_of_bags": f"Insufficient stock: {available.normalize():f} quintals available, {quantity.normalize():f} requested."}
        )


def _required_text(data: Dict[str, Any], field: str, max_length: int) -> str:
    raw = data.get(field)
    value = "" if raw is None else str(raw).strip()
    if not value:
        raise ValidationError({field: "This field is required."})
    if len(value) > max_length:
        raise ValidationError({field: f"Ensure this field has no more than {max_length} characters."})
    return value


def _movement_date(value) -> date:
    if value in (None, ""):
        raise ValidationError({"date": "This field is required."})
    d = value if isinstance(value, date) else parse_date(str(value))
    if d is None:
        raise ValidationError({"date": "Date has wrong format. Use YYYY-MM-DD."})
    if d > timezone.localdate():
        raise ValidationError({"date": "Date cannot be in the future."})
    return d


class ProductService:
    @staticmethod
    @transaction.atomic
    def create(
        *,
        actor: Optional[Actor],
        tenant_id=None,
        name: str,
        sku: str,
        price_per_quintal,
        category: Optional[str] = None,
        unit: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> Product:
        scope = tenant_scope(actor, tenant_id)
        authorize(actor, Action.MANAGE_INVENTORY, scope.tenant)

        data = {"name": name, "sku": sku}
        name = _required_text(data, "name", 255)
        sku = _required_text(data, "sku", 64)
        price = to_decimal(price_per_quintal, field="price_per_quintal", places=PRICE_PLACES)

        if Product.objects.filter(tenant_id=scope.tenant_id, sku=sku).exists():
            raise ValidationError({"sku": "A product with this SKU already exists."})

        p = Product.objects.create(
            tenant=scope.tenant,
            name=name,
            sku=sku,
            category=(category or "").strip() or DEFAULT_CATEGORY,
            unit=(unit or "").strip() or DEFAULT_UNIT,
            price_per_quintal=price,
        )

        AuditService.log(
            actor=actor,
            action="product.created",
            resource_type="Product",
            resource_id=p.id,
            tenant_id=scope.tenant_id,
            changes={"name": p.name, "sku": p.sku, "price_per_quintal": str(p.price_per_quintal)},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        publish_on_commit(scope.tenant_id, PRODUCT_UPDATED, {"product_id": str(p.id)})
        return p

    @staticmethod
    @transaction.atomic
    def update(
        *,
        actor: Optional[Actor],
        tenant_id=None,
        product_id: UUID,
        changes: Dict[str, Any],
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> Product:
        """
        Update name, sku, unit or price. Category is fixed once the product exists.
        """
        scope = tenant_scope(actor, tenant_id)
        authorize(actor, Action.MANAGE_INVENTORY, scope.tenant)

        get_product(scope=scope, product_id=product_id)
        p = Product.objects.select_for_update().get(id=product_id, tenant_id=scope.tenant_id)

        if "category" in changes and changes["category"] != p.category:
            raise ValidationError({"category": "Category cannot be changed after creation."})

        before: Dict[str, str] = {}
        after: Dict[str, str] = {}

        if "name" in changes:
            new_name = _required_text(changes, "name", 255)
            if new_name != p.name:
                before["name"], after["name"] = p.name, new_name
                p.name = new_name
        if "sku" in changes:
            new_sku = _required_text(changes, "sku", 64)
            if new_sku != p.sku:
                if Product.objects.filter(tenant_id=scope.tenant_id, sku=new_sku).exclude(id=p.id).exists():
                    raise ValidationError({"sku": "A product with this SKU already exists."})
                before["sku"], after["sku"] = p.sku, new_sku
                p.sku = new_sku
        if "unit" in changes:
            new_unit = _required_text(changes, "unit", 32)
            if new_unit != p.unit:
                before["unit"], after["unit"] = p.unit, new_unit
                p.unit = new_unit
        if "price_per_quintal" in changes:
            new_price = to_decimal(changes["price_per_quintal"], field="price_per_quintal", places=PRICE_PLACES)
            if new_price != p.price_per_quintal:
                before["price_per_quintal"], after["price_per_quintal"] = str(p.price_per_quintal), str(new_price)
                p.price_per_quintal = new_price

        if not after:
            return p

        p.save(update_fields=[*after.keys(), "updated_at"])

        AuditService.log(
            actor=actor,
            action="product.updated",
            resource_type="Product",
            resource_id=p.id,
            tenant_id=scope.tenant_id,
            changes={"before": before, "after": after},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        publish_on_commit(scope.tenant_id, PRODUCT_UPDATED, {"product_id": str(p.id)})
        return p


class MovementService:
    """
    The only write path for stock movements.

    Totals are derived before the insert and stored with the row in one
    transaction. Cache invalidation and session notification run after commit
    and can never roll the write back.
    """

    @staticmethod
    def _record(
        model,
        *,
        actor: Optional[Actor],
        tenant_id,
        party_prefix: str,
        data: Dict[str, Any],
        ip_address: Optional[str],
        user_agent: str,
    ):
        scope: TenantScope = tenant_scope(actor, tenant_id)
        authorize(actor, Action.MANAGE_INVENTORY, scope.tenant)

        if not data.get("product_id"):
            raise ValidationError({"product_id": "This field is required."})
        product = get_product(scope=scope, product_id=data["product_id"])

        party_name = _required_text(data, f"{party_prefix}_name", 255)
        party_contact = _required_text(data, f"{party_prefix}_contact", 20)
        vehicle_number = _required_text(data, "vehicle_number", 50)
        movement_date = _movement_date(data.get("date"))

        raw_price = data.get("price_per_quintal")
        if raw_price in (None, ""):
            raw_price = product.price_per_quintal

        bags = to_bag_count(data.get("num_of_bags"))
        weight = to_decimal(data.get("net_weight_per_bag_kg"), field="net_weight_per_bag_kg", places=WEIGHT_PLACES)
        price = to_decimal(raw_price, field="price_per_quintal", places=PRICE_PLACES)
        totals = compute_totals(bags, weight, price)

        if model is StockOut:
            _check_available(scope, product, totals.total_quintals)

        row = model.objects.create(
            tenant=scope.tenant,
            product=product,
            date=movement_date,
            vehicle_number=vehicle_number,
            num_of_bags=bags,
            net_weight_per_bag_kg=weight,
            price_per_quintal=price,
            total_quintals=totals.total_quintals,
            total_price=totals.total_price,
            **{f"{party_prefix}_name": party_name, f"{party_prefix}_contact": party_contact},
        )

        kind = "stock_in" if model is StockIn else "stock_out"
        AuditService.log(
            actor=actor,
            action=f"{kind}.created",
            resource_type=model.__name__,
            resource_id=row.id,
            tenant_id=scope.tenant_id,
            changes={
                "product_id": str(product.id),
                "num_of_bags": row.num_of_bags,
                "total_quintals": str(row.total_quintals),
                "total_price": str(row.total_price),
            },
            ip_address=ip_address,
            user_agent=user_agent,
        )
        publish_on_commit(
            scope.tenant_id,
            TRANSACTION_CREATED,
            {"type": kind, "id": str(row.id), "product_id": str(product.id)},
        )
        logger.info("%s recorded: tenant=%s id=%s quintals=%s", kind, scope.tenant_id, row.id, row.total_quintals)
        return row

    @staticmethod
    @transaction.atomic
    def record_stock_in(
        *,
        actor: Optional[Actor],
        tenant_id=None,
        ip_address: Optional[str] = None,
        user_agent: str = "",
        **data,
    ) -> StockIn:
        return MovementService._record(
            StockIn,
            actor=actor,
            tenant_id=tenant_id,
            party_prefix="farmer",
            data=data,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    @staticmethod
    @transaction.atomic
    def record_stock_out(
        *,
        actor: Optional[Actor],
        tenant_id=None,
        ip_address: Optional[str] = None,
        user_agent: str = "",
        **data,
    ) -> StockOut:
        return MovementService._record(
            StockOut,
            actor=actor,
            tenant_id=tenant_id,
            party_prefix="customer",
            data=data,
            ip_address=ip_address,
            user_agent=user_agent,
        )
