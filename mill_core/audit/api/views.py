from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from mill_core.audit.api.serializers import AuditLogEntrySerializer
from mill_core.audit.models import AuditLogEntry
from mill_core.audit.selectors import list_audit_logs
from mill_core.iam.permissions import ActionPermission
from mill_core.iam.roles import Action
from mill_core.iam.scope import scope_for_request


class AuditLogViewSet(viewsets.GenericViewSet):
    """
    Tenant audit trail (company admins of that tenant, super admins).
    """
    permission_classes = [ActionPermission]
    required_actions = {"list": Action.VIEW_AUDIT_LOGS}

    serializer_class = AuditLogEntrySerializer
    queryset = AuditLogEntry.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditLogEntrySerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="tenant_id",
                type=OpenApiTypes.UUID,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Required for super admins; defaults to the caller's tenant.",
            ),
            OpenApiParameter(
                name="action",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by action tag (e.g. stock_in.created, user.deactivated).",
            ),
            OpenApiParameter(
                name="resource_type",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
            ),
            OpenApiParameter(
                name="user_id",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
            ),
            OpenApiParameter(
                name="limit",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Max records to return (default 200, max 500).",
            ),
        ],
    )
    def list(self, request):
        scope = scope_for_request(request)

        user_raw = request.query_params.get("user_id")
        user_id = None
        if user_raw not in (None, ""):
            try:
                user_id = int(user_raw)
            except ValueError:
                raise ValidationError({"user_id": "Invalid user_id (int expected)"})

        limit_raw = request.query_params.get("limit")
        try:
            limit = int(limit_raw) if limit_raw else None
        except ValueError:
            limit = None

        qs = list_audit_logs(
            scope=scope,
            action=request.query_params.get("action") or None,
            resource_type=request.query_params.get("resource_type") or None,
            user_id=user_id,
            limit=limit,
        )
        return Response(AuditLogEntrySerializer(qs, many=True).data, status=status.HTTP_200_OK)
