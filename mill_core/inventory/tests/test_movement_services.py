from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from mill_core.common.events import TRANSACTION_CREATED, get_event_bus
from mill_core.common.exceptions import NotFound, TenantMismatch, Unauthorized
from mill_core.conftest import record_in, record_out
from mill_core.iam.scope import tenant_scope
from mill_core.inventory.models import StockIn
from mill_core.inventory.selectors import get_stock_in, stock_in_history, transaction_history
from mill_core.inventory.services import MovementService, ProductService

pytestmark = pytest.mark.django_db


def test_stock_in_derives_totals_at_write_time(operator, tenant):
    p = ProductService.create(actor=operator, name="IR-64", sku="IR64", price_per_quintal="2000")

    row = record_in(operator, p, bags=10, weight="50")

    assert row.total_quintals == Decimal("5")
    assert row.total_price == Decimal("10000")
    assert row.price_per_quintal == Decimal("2000")
    assert row.tenant_id == tenant.id


def test_explicit_price_overrides_product_price(operator, product):
    row = record_in(operator, product, bags=2, weight="100", price="1800.50")

    assert row.price_per_quintal == Decimal("1800.50")
    assert row.total_price == Decimal("3601.00")


def test_later_price_change_does_not_touch_history(operator, product):
    row = record_in(operator, product, bags=1, weight="100")

    ProductService.update(actor=operator, product_id=product.id, changes={"price_per_quintal": "9999.00"})

    row.refresh_from_db()
    assert row.price_per_quintal == Decimal("2200.00")
    assert row.total_price == Decimal("2200.00")


def test_movements_are_immutable(operator, product):
    row = record_in(operator, product)

    row.num_of_bags = 99
    with pytest.raises(ValueError):
        row.save()
    with pytest.raises(ValueError):
        row.delete()


def test_cannot_sell_more_than_stock(operator, product):
    record_in(operator, product, bags=10, weight="100")  # 10 quintals

    record_out(operator, product, bags=6, weight="100")
    with pytest.raises(ValidationError) as exc:
        record_out(operator, product, bags=5, weight="100")

    assert "Insufficient stock" in str(exc.value.detail)


def test_sell_exactly_available(operator, product):
    record_in(operator, product, bags=4, weight="50")

    row = record_out(operator, product, bags=4, weight="50")

    assert row.total_quintals == Decimal("2")


def test_future_date_is_rejected(operator, product):
    with pytest.raises(ValidationError):
        record_in(operator, product, on=timezone.localdate() + timedelta(days=1))


@pytest.mark.parametrize("field", ["farmer_name", "farmer_contact", "vehicle_number"])
def test_required_text_fields(operator, product, field):
    data = {
        "product_id": product.id,
        "date": timezone.localdate(),
        "farmer_name": "Ramesh",
        "farmer_contact": "98",
        "vehicle_number": "KA-01",
        "num_of_bags": 1,
        "net_weight_per_bag_kg": "50",
    }
    data[field] = "   "

    with pytest.raises(ValidationError):
        MovementService.record_stock_in(actor=operator, **data)


def test_viewer_cannot_record(viewer, product):
    with pytest.raises(Unauthorized):
        record_in(viewer, product)


def test_operator_cannot_record_into_other_tenant(operator, other_tenant, other_product):
    with pytest.raises(TenantMismatch):
        record_in(operator, other_product, tenant_id=other_tenant.id)


def test_product_of_other_tenant_is_a_mismatch(operator, other_product):
    with pytest.raises(TenantMismatch):
        record_in(operator, other_product)


def test_super_admin_records_for_named_tenant(super_admin, tenant, product):
    row = record_in(super_admin, product, tenant_id=tenant.id)

    assert row.tenant_id == tenant.id


def test_lookup_misses(operator, other_operator, product):
    row = record_in(operator, product)
    import uuid

    with pytest.raises(NotFound):
        get_stock_in(scope=tenant_scope(operator, None), stock_in_id=uuid.uuid4())
    with pytest.raises(NotFound):
        get_stock_in(scope=tenant_scope(operator, None), stock_in_id="nope")
    with pytest.raises(TenantMismatch):
        get_stock_in(scope=tenant_scope(other_operator, None), stock_in_id=row.id)


def test_publish_happens_after_commit(operator, tenant, product, django_capture_on_commit_callbacks):
    sub = get_event_bus().subscribe(tenant.id)
    try:
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            row = record_in(operator, product)
        assert sub.drain() == []

        for cb in callbacks:
            cb()
        events = [e for e in sub.drain() if e.name == TRANSACTION_CREATED]
        assert [e.payload["id"] for e in events] == [str(row.id)]
    finally:
        sub.close()


def test_publish_failure_never_fails_the_write(operator, product, django_capture_on_commit_callbacks):
    with mock.patch("mill_core.common.events.EventBus.publish", side_effect=RuntimeError("bus down")):
        with django_capture_on_commit_callbacks(execute=True):
            row = record_in(operator, product)

    assert StockIn.objects.filter(id=row.id).exists()


def test_history_filters(operator, product):
    record_in(operator, product, farmer="Ramesh", on=timezone.localdate() - timedelta(days=3))
    record_in(operator, product, farmer="Mahesh")
    record_out(operator, product, bags=1, customer="Suresh Traders")

    scope = tenant_scope(operator, None)

    assert [r.farmer_name for r in stock_in_history(scope=scope)] == ["Mahesh", "Ramesh"]
    assert [r.farmer_name for r in stock_in_history(scope=scope, farmer_name="ram")] == ["Ramesh"]

    rows = transaction_history(scope=scope)
    assert len(rows) == 3
    assert rows[-1]["party_name"] == "Ramesh"
    assert {r["type"] for r in rows} == {"in", "out"}
