from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from mill_core.audit.services import request_meta
from mill_core.common.api.pagination import paginate
from mill_core.iam.authorization import authorize, can
from mill_core.iam.permissions import ActionPermission, get_actor
from mill_core.iam.roles import Action
from mill_core.iam.scope import TenantScope, scope_for_request
from mill_core.inventory.api.filters import ProductFilter, StockInFilter, StockOutFilter
from mill_core.inventory.api.serializers import (
    ProductCreateSerializer,
    ProductSerializer,
    ProductUpdateSerializer,
    StockInCreateSerializer,
    StockInSerializer,
    StockOutCreateSerializer,
    StockOutSerializer,
    TransactionRowSerializer,
)
from mill_core.inventory.models import Product, StockIn, StockOut
from mill_core.inventory.selectors import (
    get_product,
    get_stock_in,
    get_stock_out,
    product_qs,
    stock_in_history,
    stock_out_history,
    transaction_history,
)
from mill_core.inventory.services import MovementService, ProductService

TENANT_PARAM = OpenApiParameter(
    name="tenant_id",
    type=OpenApiTypes.UUID,
    location=OpenApiParameter.QUERY,
    required=False,
    description="Required for super admins; defaults to the caller's tenant.",
)


def _read_scope(request) -> TenantScope:
    scope = scope_for_request(request)
    authorize(scope.actor, Action.VIEW_REPORTS, scope.tenant)
    return scope


def _context(scope: TenantScope) -> dict:
    return {"show_financials": can(scope.actor, Action.VIEW_FINANCIALS, scope.tenant)}


def _tenant_arg(request):
    return request.query_params.get("tenant_id") or None


def _filtered(filterset_class, request, queryset):
    f = filterset_class(request.query_params, queryset=queryset)
    if not f.is_valid():
        raise ValidationError(f.errors)
    return f


@extend_schema_view(
    list=extend_schema(
        tags=["Inventory"],
        parameters=[
            TENANT_PARAM,
            OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="category", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: ProductSerializer(many=True)},
    ),
    retrieve=extend_schema(tags=["Inventory"], parameters=[TENANT_PARAM], responses={200: ProductSerializer}),
    create=extend_schema(tags=["Inventory"], parameters=[TENANT_PARAM], request=ProductCreateSerializer, responses={201: ProductSerializer}),
    partial_update=extend_schema(tags=["Inventory"], parameters=[TENANT_PARAM], request=ProductUpdateSerializer, responses={200: ProductSerializer}),
)
class ProductViewSet(viewsets.ViewSet):
    permission_classes = [ActionPermission]
    required_actions = {
        "list": Action.VIEW_REPORTS,
        "retrieve": Action.VIEW_REPORTS,
        "create": Action.MANAGE_INVENTORY,
        "partial_update": Action.MANAGE_INVENTORY,
    }

    serializer_class = ProductSerializer
    queryset = Product.objects.none()

    def list(self, request):
        scope = _read_scope(request)
        qs = _filtered(ProductFilter, request, product_qs(scope=scope)).qs.order_by("name", "id")
        return paginate(request, qs, ProductSerializer, context=_context(scope))

    def retrieve(self, request, pk=None):
        scope = _read_scope(request)
        obj = get_product(scope=scope, product_id=pk)
        return Response(ProductSerializer(obj, context=_context(scope)).data, status=status.HTTP_200_OK)

    def create(self, request):
        ser = ProductCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        actor = get_actor(request)
        p = ProductService.create(
            actor=actor,
            tenant_id=_tenant_arg(request),
            **ser.validated_data,
            **request_meta(request),
        )
        return Response(ProductSerializer(p, context={"show_financials": True}).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        ser = ProductUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        p = ProductService.update(
            actor=get_actor(request),
            tenant_id=_tenant_arg(request),
            product_id=pk,
            changes=dict(ser.validated_data),
            **request_meta(request),
        )
        return Response(ProductSerializer(p, context={"show_financials": True}).data, status=status.HTTP_200_OK)


class _MovementViewSet(viewsets.ViewSet):
    """
    list / create / retrieve only. Movements are never edited or deleted.
    """
    permission_classes = [ActionPermission]
    required_actions = {
        "list": Action.VIEW_REPORTS,
        "retrieve": Action.VIEW_REPORTS,
        "create": Action.MANAGE_INVENTORY,
    }

    read_serializer = None
    create_serializer = None
    filterset_class = None

    def _history(self, scope):
        raise NotImplementedError

    def _get(self, scope, pk):
        raise NotImplementedError

    def _record(self, request, data):
        raise NotImplementedError

    def list(self, request):
        scope = _read_scope(request)
        qs = _filtered(self.filterset_class, request, self._history(scope)).qs
        return paginate(request, qs, self.read_serializer, context=_context(scope))

    def retrieve(self, request, pk=None):
        scope = _read_scope(request)
        obj = self._get(scope, pk)
        return Response(self.read_serializer(obj, context=_context(scope)).data, status=status.HTTP_200_OK)

    def create(self, request):
        ser = self.create_serializer(data=request.data)
        ser.is_valid(raise_exception=True)

        row = self._record(request, dict(ser.validated_data))
        return Response(self.read_serializer(row, context={"show_financials": True}).data, status=status.HTTP_201_CREATED)


_MOVEMENT_PARAMS = [
    TENANT_PARAM,
    OpenApiParameter(name="date_from", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
    OpenApiParameter(name="date_to", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
    OpenApiParameter(name="product_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
]


@extend_schema_view(
    list=extend_schema(
        tags=["Inventory"],
        parameters=[*_MOVEMENT_PARAMS, OpenApiParameter(name="farmer_name", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False)],
        responses={200: StockInSerializer(many=True)},
    ),
    retrieve=extend_schema(tags=["Inventory"], parameters=[TENANT_PARAM], responses={200: StockInSerializer}),
    create=extend_schema(tags=["Inventory"], parameters=[TENANT_PARAM], request=StockInCreateSerializer, responses={201: StockInSerializer}),
)
class StockInViewSet(_MovementViewSet):
    serializer_class = StockInSerializer
    queryset = StockIn.objects.none()

    read_serializer = StockInSerializer
    create_serializer = StockInCreateSerializer
    filterset_class = StockInFilter

    def _history(self, scope):
        return stock_in_history(scope=scope)

    def _get(self, scope, pk):
        return get_stock_in(scope=scope, stock_in_id=pk)

    def _record(self, request, data):
        return MovementService.record_stock_in(
            actor=get_actor(request),
            tenant_id=_tenant_arg(request),
            **data,
            **request_meta(request),
        )


@extend_schema_view(
    list=extend_schema(
        tags=["Inventory"],
        parameters=[*_MOVEMENT_PARAMS, OpenApiParameter(name="customer_name", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False)],
        responses={200: StockOutSerializer(many=True)},
    ),
    retrieve=extend_schema(tags=["Inventory"], parameters=[TENANT_PARAM], responses={200: StockOutSerializer}),
    create=extend_schema(tags=["Inventory"], parameters=[TENANT_PARAM], request=StockOutCreateSerializer, responses={201: StockOutSerializer}),
)
class StockOutViewSet(_MovementViewSet):
    serializer_class = StockOutSerializer
    queryset = StockOut.objects.none()

    read_serializer = StockOutSerializer
    create_serializer = StockOutCreateSerializer
    filterset_class = StockOutFilter

    def _history(self, scope):
        return stock_out_history(scope=scope)

    def _get(self, scope, pk):
        return get_stock_out(scope=scope, stock_out_id=pk)

    def _record(self, request, data):
        return MovementService.record_stock_out(
            actor=get_actor(request),
            tenant_id=_tenant_arg(request),
            **data,
            **request_meta(request),
        )


class TransactionHistoryView(APIView):
    """
    Combined stock-in/stock-out history, newest business date first.
    """
    permission_classes = [ActionPermission]
    required_actions = {"list": Action.VIEW_REPORTS}

    @extend_schema(
        tags=["Inventory"],
        parameters=[
            TENANT_PARAM,
            OpenApiParameter(name="date_from", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="date_to", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="party_name", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: TransactionRowSerializer(many=True)},
    )
    def get(self, request):
        scope = _read_scope(request)

        f = _filtered(StockInFilter, request, StockIn.objects.none())

        rows = transaction_history(
            scope=scope,
            date_from=f.form.cleaned_data.get("date_from"),
            date_to=f.form.cleaned_data.get("date_to"),
            party_name=request.query_params.get("party_name") or None,
        )
        return Response(TransactionRowSerializer(rows, many=True, context=_context(scope)).data, status=status.HTTP_200_OK)
