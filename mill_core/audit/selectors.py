# mill_core/audit/selectors.py
from __future__ import annotations

from django.db.models import QuerySet

from mill_core.audit.models import AuditLogEntry
from mill_core.iam.authorization import authorize
from mill_core.iam.roles import Action
from mill_core.iam.scope import TenantScope

DEFAULT_LIMIT = 200
MAX_LIMIT = 500


def list_audit_logs(
    *,
    scope: TenantScope,
    action: str | None = None,
    resource_type: str | None = None,
    user_id: int | None = None,
    limit: int | None = None,
) -> QuerySet[AuditLogEntry]:
    authorize(scope.actor, Action.VIEW_AUDIT_LOGS, scope.tenant)

    qs = AuditLogEntry.objects.filter(tenant_id=scope.tenant_id).select_related("user")

    if action:
        qs = qs.filter(action=action)
    if resource_type:
        qs = qs.filter(resource_type=resource_type)
    if user_id is not None:
        qs = qs.filter(user_id=user_id)

    n = DEFAULT_LIMIT if not limit else max(1, min(int(limit), MAX_LIMIT))
    return qs.order_by("-occurred_at")[:n]
