# mill_core/audit/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from django.db import transaction

from mill_core.audit.models import AuditLogEntry

logger = logging.getLogger(__name__)

# user agents beyond this are truncated, not rejected
_UA_MAX = 512


@dataclass(frozen=True)
class AuditRecord:
    id: Any
    action: str
    resource_type: str
    resource_id: str
    tenant_id: Optional[str]
    user_id: Any
    changes: Dict[str, Any]


def request_meta(request) -> Dict[str, str]:
    """
    ip_address / user_agent kwargs for AuditService.log from a DRF/Django request.
    """
    if request is None:
        return {}
    meta = getattr(request, "META", {}) or {}
    forwarded = meta.get("HTTP_X_FORWARDED_FOR", "")
    ip = forwarded.split(",")[0].strip() if forwarded else meta.get("REMOTE_ADDR")
    return {"ip_address": ip or None, "user_agent": meta.get("HTTP_USER_AGENT", "")}


class AuditService:
    """
    Central audit writer. Callers decide when to log; this only persists.
    """

    @staticmethod
    @transaction.atomic
    def log(
        *,
        actor,
        action: str,
        resource_type: str,
        resource_id=None,
        tenant_id=None,
        changes: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> AuditRecord:
        changes = changes or {}
        user_id = getattr(actor, "user_id", None)

        entry = AuditLogEntry.objects.create(
            tenant_id=tenant_id,
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id="" if resource_id is None else str(resource_id),
            changes=changes,
            ip_address=ip_address or None,
            user_agent=(user_agent or "")[:_UA_MAX],
        )
        logger.debug("audit %s %s:%s by user=%s", action, resource_type, entry.resource_id, user_id)

        return AuditRecord(
            id=entry.id,
            action=action,
            resource_type=resource_type,
            resource_id=entry.resource_id,
            tenant_id=None if tenant_id is None else str(tenant_id),
            user_id=user_id,
            changes=changes,
        )
