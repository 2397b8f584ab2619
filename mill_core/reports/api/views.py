from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from mill_core.iam.permissions import ActionPermission, get_actor
from mill_core.iam.roles import Action
from mill_core.reports.api.serializers import (
    FinancialMetricsSerializer,
    InventoryMetricsSerializer,
    MovementTrendSerializer,
    PerformanceComparisonSerializer,
    RecentTransactionSerializer,
    StockAlertSerializer,
    StockLevelSerializer,
    TopEntitySerializer,
    render_snapshot,
)
from mill_core.reports.metrics import TOP_KINDS
from mill_core.reports.periods import NAMED_SELECTORS, parse_period
from mill_core.reports.services import DashboardService

TENANT_PARAM = OpenApiParameter(
    name="tenant_id",
    type=OpenApiTypes.UUID,
    location=OpenApiParameter.QUERY,
    required=False,
    description="Required for super admins; defaults to the caller's tenant.",
)

PERIOD_PARAMS = [
    OpenApiParameter(
        name="period",
        type=OpenApiTypes.STR,
        location=OpenApiParameter.QUERY,
        required=False,
        enum=[*NAMED_SELECTORS, "custom"],
        description="Defaults to this_month.",
    ),
    OpenApiParameter(name="start", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
    OpenApiParameter(name="end", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False, description="Inclusive."),
]


def _int_param(request, name: str):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError({name: "Must be an integer."})


class DashboardViewSet(viewsets.ViewSet):
    """
    Read-only dashboard widgets. Every figure is tenant-scoped and cached per tenant.
    """
    permission_classes = [ActionPermission]
    required_actions = {
        "inventory": Action.VIEW_REPORTS,
        "stock_levels": Action.VIEW_REPORTS,
        "alerts": Action.VIEW_REPORTS,
        "financial": Action.VIEW_FINANCIALS,
        "trend": Action.VIEW_REPORTS,
        "top": Action.VIEW_REPORTS,
        "comparison": Action.VIEW_REPORTS,
        "recent": Action.VIEW_REPORTS,
        "snapshot": Action.VIEW_REPORTS,
    }

    def _args(self, request) -> dict:
        return {
            "tenant_id": request.query_params.get("tenant_id") or None,
            "actor": get_actor(request),
        }

    @extend_schema(tags=["Dashboard"], parameters=[TENANT_PARAM], responses={200: InventoryMetricsSerializer})
    @action(detail=False, methods=["get"])
    def inventory(self, request):
        data = DashboardService.get_inventory_metrics(**self._args(request))
        return Response(InventoryMetricsSerializer(data).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Dashboard"], parameters=[TENANT_PARAM], responses={200: StockLevelSerializer(many=True)})
    @action(detail=False, methods=["get"], url_path="stock-levels")
    def stock_levels(self, request):
        data = DashboardService.get_stock_levels(**self._args(request))
        return Response(StockLevelSerializer(data, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Dashboard"], parameters=[TENANT_PARAM], responses={200: StockAlertSerializer(many=True)})
    @action(detail=False, methods=["get"])
    def alerts(self, request):
        data = DashboardService.get_stock_alerts(**self._args(request))
        return Response(StockAlertSerializer(data, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Dashboard"], parameters=[TENANT_PARAM, *PERIOD_PARAMS], responses={200: FinancialMetricsSerializer})
    @action(detail=False, methods=["get"])
    def financial(self, request):
        data = DashboardService.get_financial_metrics(period=parse_period(request.query_params), **self._args(request))
        return Response(FinancialMetricsSerializer(data).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Dashboard"], parameters=[TENANT_PARAM, *PERIOD_PARAMS], responses={200: MovementTrendSerializer})
    @action(detail=False, methods=["get"])
    def trend(self, request):
        data = DashboardService.get_movement_trend(period=parse_period(request.query_params), **self._args(request))
        return Response(MovementTrendSerializer(data).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Dashboard"],
        parameters=[
            TENANT_PARAM,
            *PERIOD_PARAMS,
            OpenApiParameter(name="kind", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=True, enum=sorted(TOP_KINDS)),
            OpenApiParameter(name="n", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: TopEntitySerializer(many=True)},
    )
    @action(detail=False, methods=["get"])
    def top(self, request):
        kind = (request.query_params.get("kind") or "").strip()
        if not kind:
            raise ValidationError({"kind": "This parameter is required."})

        data = DashboardService.get_top_entities(
            period=parse_period(request.query_params),
            kind=kind,
            n=_int_param(request, "n"),
            **self._args(request),
        )
        return Response(TopEntitySerializer(data, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Dashboard"], parameters=[TENANT_PARAM, *PERIOD_PARAMS], responses={200: PerformanceComparisonSerializer})
    @action(detail=False, methods=["get"])
    def comparison(self, request):
        data = DashboardService.get_performance_comparison(period=parse_period(request.query_params), **self._args(request))
        return Response(PerformanceComparisonSerializer(data).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Dashboard"],
        parameters=[
            TENANT_PARAM,
            OpenApiParameter(name="limit", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: RecentTransactionSerializer(many=True)},
    )
    @action(detail=False, methods=["get"])
    def recent(self, request):
        limit = _int_param(request, "limit")
        if limit is not None and not (1 <= limit <= 100):
            raise ValidationError({"limit": "Must be between 1 and 100."})

        data = DashboardService.get_recent_transactions(limit=limit, **self._args(request))
        return Response(RecentTransactionSerializer(data, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Dashboard"], parameters=[TENANT_PARAM, *PERIOD_PARAMS], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"])
    def snapshot(self, request):
        data = DashboardService.get_dashboard_snapshot(period=parse_period(request.query_params), **self._args(request))
        return Response(render_snapshot(data), status=status.HTTP_200_OK)
