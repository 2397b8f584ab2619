from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from mill_core.audit.services import request_meta
from mill_core.common.exceptions import NotFound
from mill_core.iam.api.serializers import UserProfileSerializer
from mill_core.iam.permissions import ActionPermission, IsSuperAdmin, get_actor
from mill_core.iam.roles import Action
from mill_core.tenants.api.serializers import (
    TenantCreateSerializer,
    TenantSerializer,
    TenantSettingsUpdateSerializer,
)
from mill_core.tenants.models import Tenant
from mill_core.tenants.selectors import get_tenant_or_none, tenants_with_stats
from mill_core.tenants.services import TenantService


def _uuid_or_404(pk) -> UUID:
    try:
        return UUID(str(pk))
    except ValueError:
        raise NotFound("Tenant not found.")


@extend_schema_view(
    list=extend_schema(
        tags=["Tenants"],
        operation_id="v1_tenants_list",
        parameters=[OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False)],
        responses={200: TenantSerializer(many=True)},
    ),
    retrieve=extend_schema(tags=["Tenants"], operation_id="v1_tenants_retrieve", responses={200: TenantSerializer}),
    create=extend_schema(tags=["Tenants"], operation_id="v1_tenants_create", request=TenantCreateSerializer, responses={201: TenantSerializer}),
    activate=extend_schema(tags=["Tenants"], operation_id="v1_tenants_activate", request=None, responses={200: TenantSerializer}),
    deactivate=extend_schema(tags=["Tenants"], operation_id="v1_tenants_deactivate", request=None, responses={200: TenantSerializer}),
    set_settings=extend_schema(
        tags=["Tenants"],
        operation_id="v1_tenants_set_settings",
        request=TenantSettingsUpdateSerializer,
        responses={200: TenantSerializer},
    ),
)
class TenantViewSet(viewsets.ViewSet):
    """
    Tenant administration. Super admins only, except the settings action
    which a company admin may call for their own tenant.
    Routing is centralized in mill_core/api/urls.py.
    """

    serializer_class = TenantSerializer
    queryset = Tenant.objects.none()
    required_actions = {"set_settings": Action.MANAGE_TENANT_SETTINGS}

    def get_permissions(self):
        if self.action == "set_settings":
            return [ActionPermission()]
        return [IsSuperAdmin()]

    def list(self, request):
        qs = tenants_with_stats(search=request.query_params.get("q") or None)[:300]
        return Response(TenantSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    def retrieve(self, request, pk=None):
        obj = get_tenant_or_none(tenant_id=_uuid_or_404(pk))
        if obj is None:
            raise NotFound("Tenant not found.")
        return Response(TenantSerializer(obj).data, status=status.HTTP_200_OK)

    def create(self, request):
        ser = TenantCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        data = dict(ser.validated_data)
        admin_name = data.pop("admin_name", "")
        admin_password = data.pop("admin_password", None)
        actor = get_actor(request)

        if not data.get("admin_email"):
            data.pop("admin_email", None)
            t = TenantService.create(actor=actor, **data, **request_meta(request))
            return Response(TenantSerializer(t).data, status=status.HTTP_201_CREATED)

        t, admin = TenantService.create_with_admin(
            actor=actor,
            admin_name=admin_name,
            admin_password=admin_password,
            **data,
            **request_meta(request),
        )
        body = dict(TenantSerializer(t).data)
        body["admin"] = UserProfileSerializer(admin).data
        return Response(body, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="activate")
    def activate(self, request, pk=None):
        t = TenantService.activate(actor=get_actor(request), tenant_id=_uuid_or_404(pk), **request_meta(request))
        return Response(TenantSerializer(t).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="deactivate")
    def deactivate(self, request, pk=None):
        t = TenantService.deactivate(actor=get_actor(request), tenant_id=_uuid_or_404(pk), **request_meta(request))
        return Response(TenantSerializer(t).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="settings")
    def set_settings(self, request, pk=None):
        ser = TenantSettingsUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        t = TenantService.update_settings(
            actor=get_actor(request),
            tenant_id=_uuid_or_404(pk),
            settings=ser.validated_data["settings"],
            **request_meta(request),
        )
        return Response(TenantSerializer(t).data, status=status.HTTP_200_OK)
