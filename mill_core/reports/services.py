# mill_core/reports/services.py
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Union

from django.conf import settings

from mill_core.common.exceptions import ComputationError, DegradedData
from mill_core.iam.authorization import Actor, authorize, can
from mill_core.iam.roles import Action
from mill_core.iam.scope import TenantScope, tenant_scope
from mill_core.reports import metrics
from mill_core.reports.cache import get_dashboard_cache
from mill_core.reports.periods import ResolvedPeriod, Selector, resolve_period
from mill_core.tenants.selectors import low_stock_threshold

logger = logging.getLogger(__name__)

PeriodArg = Union[Selector, ResolvedPeriod]

# stripped from results for callers without view_financials
MONEY_KEYS = frozenset({"total_value", "amount", "price_per_quintal", "total_price"})


def _strip_money(value):
    if isinstance(value, dict):
        return {k: _strip_money(v) for k, v in value.items() if k not in MONEY_KEYS}
    if isinstance(value, list):
        return [_strip_money(v) for v in value]
    return value


def _resolve(period: PeriodArg) -> ResolvedPeriod:
    return period if isinstance(period, ResolvedPeriod) else resolve_period(period)


class DashboardService:
    """
    Gated, cached entry points for every dashboard metric.

    Order for each call: resolve the tenant scope (TenantMismatch/TenantRequired),
    check capabilities, then read through the per-tenant cache. Cached values
    are role-independent; money fields are removed per caller on the way out.
    """

    @staticmethod
    def _gate(actor: Optional[Actor], tenant_id, *, financial: bool = False) -> TenantScope:
        scope = tenant_scope(actor, tenant_id)
        authorize(actor, Action.VIEW_REPORTS, scope.tenant)
        if financial:
            authorize(actor, Action.VIEW_FINANCIALS, scope.tenant)
        return scope

    @staticmethod
    def _cached(
        scope: TenantScope,
        kind: str,
        range_key: str,
        compute: Callable[[], Any],
        cancel_event: Optional[threading.Event],
    ):
        return get_dashboard_cache().get_or_compute(
            scope.tenant_id,
            kind,
            range_key,
            compute,
            cancel_event=cancel_event,
        )

    @staticmethod
    def _for_caller(scope: TenantScope, value):
        if can(scope.actor, Action.VIEW_FINANCIALS, scope.tenant):
            return value
        return _strip_money(value)

    # -----------------------------
    # widgets
    # -----------------------------

    @staticmethod
    def get_inventory_metrics(*, tenant_id=None, actor: Optional[Actor], cancel_event=None) -> dict:
        scope = DashboardService._gate(actor, tenant_id)
        value = DashboardService._cached(scope, "inventory", "", lambda: metrics.inventory_metrics(scope), cancel_event)
        return DashboardService._for_caller(scope, value)

    @staticmethod
    def get_stock_levels(*, tenant_id=None, actor: Optional[Actor], cancel_event=None) -> List[dict]:
        scope = DashboardService._gate(actor, tenant_id)
        value = DashboardService._cached(scope, "stock_levels", "", lambda: metrics.stock_levels(scope), cancel_event)
        return DashboardService._for_caller(scope, value)

    @staticmethod
    def get_stock_alerts(*, tenant_id=None, actor: Optional[Actor], cancel_event=None) -> List[dict]:
        scope = DashboardService._gate(actor, tenant_id)
        threshold = low_stock_threshold(scope.tenant)
        return DashboardService._cached(
            scope,
            "alerts",
            f"threshold={threshold}",
            lambda: metrics.stock_alerts(scope, threshold=threshold),
            cancel_event,
        )

    @staticmethod
    def get_financial_metrics(*, tenant_id=None, actor: Optional[Actor], period: PeriodArg = None, cancel_event=None) -> dict:
        scope = DashboardService._gate(actor, tenant_id, financial=True)
        p = _resolve(period)
        return DashboardService._cached(
            scope,
            "financial",
            p.current.key,
            lambda: metrics.financial_metrics(scope, p.current),
            cancel_event,
        )

    @staticmethod
    def get_movement_trend(*, tenant_id=None, actor: Optional[Actor], period: PeriodArg = None, cancel_event=None) -> dict:
        scope = DashboardService._gate(actor, tenant_id)
        p = _resolve(period)
        return DashboardService._cached(
            scope,
            "trend",
            p.current.key,
            lambda: metrics.movement_trend(scope, p.current),
            cancel_event,
        )

    @staticmethod
    def get_top_entities(
        *,
        tenant_id=None,
        actor: Optional[Actor],
        period: PeriodArg = None,
        kind: str,
        n: Optional[int] = None,
        cancel_event=None,
    ) -> List[dict]:
        scope = DashboardService._gate(actor, tenant_id)
        p = _resolve(period)
        value = DashboardService._cached(
            scope,
            f"top:{kind}:{n or 'default'}",
            p.current.key,
            lambda: metrics.top_entities(scope, p.current, kind=kind, n=n),
            cancel_event,
        )
        return DashboardService._for_caller(scope, value)

    @staticmethod
    def get_performance_comparison(
        *,
        tenant_id=None,
        actor: Optional[Actor],
        period: PeriodArg = None,
        cancel_event=None,
    ) -> dict:
        scope = DashboardService._gate(actor, tenant_id)
        p = _resolve(period)
        return DashboardService._cached(
            scope,
            "comparison",
            f"{p.current.key}|{p.previous.key}",
            lambda: metrics.performance_comparison(scope, p),
            cancel_event,
        )

    @staticmethod
    def get_recent_transactions(
        *,
        tenant_id=None,
        actor: Optional[Actor],
        limit: Optional[int] = None,
        cancel_event=None,
    ) -> List[dict]:
        scope = DashboardService._gate(actor, tenant_id)
        n = limit or getattr(settings, "MILL_RECENT_TRANSACTIONS_LIMIT", 10)
        value = DashboardService._cached(
            scope,
            "recent",
            str(n),
            lambda: metrics.recent_transactions(scope, limit=n),
            cancel_event,
        )
        return DashboardService._for_caller(scope, value)

    # -----------------------------
    # whole page
    # -----------------------------

    @staticmethod
    def get_dashboard_snapshot(
        *,
        tenant_id=None,
        actor: Optional[Actor],
        period: PeriodArg = None,
        cancel_event=None,
    ) -> Dict[str, Any]:
        """
        Every widget the caller may see, each computed on its own.
        A widget whose store read keeps failing, or whose figures do not add
        up, is reported as {"error": code} and the rest still render.
        """
        scope = DashboardService._gate(actor, tenant_id)
        p = _resolve(period)
        common = {"tenant_id": scope.tenant_id, "actor": actor, "cancel_event": cancel_event}

        widgets: Dict[str, Callable[[], Any]] = {
            "inventory": lambda: DashboardService.get_inventory_metrics(**common),
            "alerts": lambda: DashboardService.get_stock_alerts(**common),
            "comparison": lambda: DashboardService.get_performance_comparison(period=p, **common),
            "trend": lambda: DashboardService.get_movement_trend(period=p, **common),
            "top_products_in": lambda: DashboardService.get_top_entities(period=p, kind=metrics.PRODUCTS_IN, **common),
            "top_products_out": lambda: DashboardService.get_top_entities(period=p, kind=metrics.PRODUCTS_OUT, **common),
            "top_farmers": lambda: DashboardService.get_top_entities(period=p, kind=metrics.FARMERS, **common),
            "top_customers": lambda: DashboardService.get_top_entities(period=p, kind=metrics.CUSTOMERS, **common),
            "recent": lambda: DashboardService.get_recent_transactions(**common),
        }
        if can(actor, Action.VIEW_FINANCIALS, scope.tenant):
            widgets["financial"] = lambda: DashboardService.get_financial_metrics(period=p, **common)

        out: Dict[str, Any] = {"period": p.as_dict()}
        for name, fn in widgets.items():
            try:
                out[name] = fn()
            except (DegradedData, ComputationError) as exc:
                logger.warning("dashboard widget %s failed for tenant %s: %s", name, scope.tenant_id, exc.default_code)
                out[name] = {"error": exc.default_code}
        return out
