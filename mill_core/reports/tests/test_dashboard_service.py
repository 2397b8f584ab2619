from decimal import Decimal
from unittest import mock

import pytest
from django.apps import apps
from django.utils import timezone

from mill_core.common.exceptions import ComputationError, DegradedData, TenantMismatch, TenantRequired, Unauthorized
from mill_core.conftest import record_in, record_out
from mill_core.inventory.models import StockIn
from mill_core.reports import metrics
from mill_core.reports.cache import DashboardCache
from mill_core.reports.periods import CustomPeriod
from mill_core.reports.services import DashboardService
from mill_core.tenants.services import TenantService

pytestmark = pytest.mark.django_db


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock(monkeypatch):
    c = FakeClock()
    monkeypatch.setattr(apps.get_app_config("reports"), "dashboard_cache", DashboardCache(ttl_seconds=30, clock=c))
    return c


def _today():
    today = timezone.localdate()
    return CustomPeriod(today, today)


def test_viewer_is_refused_financials_operator_is_not(viewer, operator, product):
    record_in(operator, product, bags=10, weight="50")

    with pytest.raises(Unauthorized):
        DashboardService.get_financial_metrics(actor=viewer, period=_today())

    m = DashboardService.get_financial_metrics(actor=operator, period=_today())
    assert m["total_purchases"] == Decimal("11000")


def test_viewer_results_never_carry_money(viewer, operator, product):
    record_in(operator, product, bags=100, weight="100", farmer="Ramesh")
    record_out(operator, product, bags=10, weight="100")

    inv = DashboardService.get_inventory_metrics(actor=viewer)
    levels = DashboardService.get_stock_levels(actor=viewer)
    top = DashboardService.get_top_entities(actor=viewer, period=_today(), kind=metrics.FARMERS)
    recent = DashboardService.get_recent_transactions(actor=viewer)

    assert "total_value" not in inv
    assert inv["total_stock"] == Decimal("90")
    assert "price_per_quintal" not in levels[0]
    assert "amount" not in top[0]
    assert top[0]["quantity"] == Decimal("100")
    for row in recent:
        assert "total_price" not in row
        assert "price_per_quintal" not in row


def test_operator_sees_money_after_viewer_filled_the_cache(viewer, operator, product):
    record_in(operator, product, bags=10, weight="100")

    DashboardService.get_inventory_metrics(actor=viewer)
    inv = DashboardService.get_inventory_metrics(actor=operator)

    assert inv["total_value"] == Decimal("22000")


def test_other_tenant_is_a_mismatch(operator, other_tenant):
    with pytest.raises(TenantMismatch):
        DashboardService.get_inventory_metrics(actor=operator, tenant_id=other_tenant.id)


def test_super_admin_must_name_tenant(super_admin, tenant):
    with pytest.raises(TenantRequired):
        DashboardService.get_stock_alerts(actor=super_admin)

    assert DashboardService.get_stock_alerts(actor=super_admin, tenant_id=tenant.id) == []


def test_no_actor():
    with pytest.raises(Unauthorized):
        DashboardService.get_inventory_metrics(actor=None)


def test_alerts_use_tenant_threshold(company_admin, operator, tenant, product):
    record_in(operator, product, bags=30, weight="100")

    assert [a["severity"] for a in DashboardService.get_stock_alerts(actor=operator)] == [metrics.LOW_STOCK]

    TenantService.update_settings(actor=company_admin, tenant_id=tenant.id, settings={"low_stock_threshold": "20"})
    assert DashboardService.get_stock_alerts(actor=operator) == []


def test_write_invalidates_cached_inventory(operator, product, clock, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        record_in(operator, product, bags=10, weight="100")

    clock.now = 0
    assert DashboardService.get_inventory_metrics(actor=operator)["total_stock"] == Decimal("10")

    clock.now = 10
    with django_capture_on_commit_callbacks(execute=True):
        record_in(operator, product, bags=5, weight="100")

    clock.now = 11
    assert DashboardService.get_inventory_metrics(actor=operator)["total_stock"] == Decimal("15")


def test_without_a_change_event_the_entry_lives_until_ttl(operator, product, tenant, clock):
    record_in(operator, product, bags=10, weight="100")
    clock.now = 0
    DashboardService.get_inventory_metrics(actor=operator)

    # a row written behind the service's back publishes nothing
    StockIn.objects.create(
        tenant=tenant,
        product=product,
        date=timezone.localdate(),
        farmer_name="Direct",
        farmer_contact="1",
        vehicle_number="V",
        num_of_bags=1,
        net_weight_per_bag_kg=Decimal("100"),
        price_per_quintal=Decimal("1"),
        total_quintals=Decimal("1"),
        total_price=Decimal("1"),
    )

    clock.now = 11
    assert DashboardService.get_inventory_metrics(actor=operator)["total_stock"] == Decimal("10")
    clock.now = 31
    assert DashboardService.get_inventory_metrics(actor=operator)["total_stock"] == Decimal("11")


def test_product_price_change_invalidates(operator, product, clock, django_capture_on_commit_callbacks):
    from mill_core.inventory.services import ProductService

    record_in(operator, product, bags=10, weight="100")
    assert DashboardService.get_inventory_metrics(actor=operator)["total_value"] == Decimal("22000")

    clock.now = 5
    with django_capture_on_commit_callbacks(execute=True):
        ProductService.update(actor=operator, product_id=product.id, changes={"price_per_quintal": "2500.00"})

    assert DashboardService.get_inventory_metrics(actor=operator)["total_value"] == Decimal("25000")


def test_snapshot_lists_widgets_by_role(viewer, operator, product):
    record_in(operator, product, bags=10, weight="100")

    op = DashboardService.get_dashboard_snapshot(actor=operator, period=_today())
    vw = DashboardService.get_dashboard_snapshot(actor=viewer, period=_today())

    assert "financial" in op
    assert "financial" not in vw
    assert op["period"]["selector"] == "custom"
    assert op["inventory"]["total_stock"] == Decimal("10")
    assert "total_value" not in vw["inventory"]


def test_snapshot_degrades_one_widget_at_a_time(operator, product):
    record_in(operator, product, bags=10, weight="100")

    with mock.patch("mill_core.inventory.selectors.totals_by_party", side_effect=DegradedData()):
        snap = DashboardService.get_dashboard_snapshot(actor=operator, period=_today())

    assert snap["top_farmers"] == {"error": "degraded_data"}
    assert snap["top_customers"] == {"error": "degraded_data"}
    assert snap["inventory"]["total_stock"] == Decimal("10")


def test_snapshot_reports_computation_errors(operator, product):
    with mock.patch("mill_core.reports.metrics.stock_levels", side_effect=ComputationError()):
        snap = DashboardService.get_dashboard_snapshot(actor=operator, period=_today())

    assert snap["inventory"] == {"error": "computation_error"}
    assert snap["alerts"] == {"error": "computation_error"}
    assert isinstance(snap["trend"], dict) and "dates" in snap["trend"]


def test_snapshot_still_refuses_foreign_tenant(operator, other_tenant):
    with pytest.raises(TenantMismatch):
        DashboardService.get_dashboard_snapshot(actor=operator, tenant_id=other_tenant.id)
