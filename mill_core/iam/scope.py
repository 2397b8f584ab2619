# mill_core/iam/scope.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from rest_framework.exceptions import ValidationError

from mill_core.common.exceptions import NotFound, TenantMismatch, TenantRequired, Unauthorized
from mill_core.iam.authorization import Actor
from mill_core.tenants.models import Tenant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantScope:
    """
    Proof that ``actor`` may read ``tenant``'s data.
    Selectors only accept one of these, never a raw tenant id.
    """
    tenant: Tenant
    actor: Actor

    @property
    def tenant_id(self) -> UUID:
        return self.tenant.id


def _parse_uuid(value) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError({"tenant_id": "Invalid UUID"})


def tenant_scope(actor: Optional[Actor], tenant_id=None) -> TenantScope:
    """
    Resolve the tenant an operation runs against.

    - no actor                          -> Unauthorized
    - super_admin without tenant_id     -> TenantRequired (no implicit all-tenants path)
    - super_admin with unknown tenant   -> NotFound
    - anyone else naming another tenant -> TenantMismatch
    - anyone else, tenant deactivated   -> Unauthorized
    Non-super actors may omit tenant_id; their own tenant is used.
    """
    if actor is None:
        raise Unauthorized()

    if actor.is_super_admin:
        if tenant_id in (None, ""):
            raise TenantRequired()
        tid = _parse_uuid(tenant_id)
        tenant = Tenant.objects.filter(id=tid).first()
        if tenant is None:
            raise NotFound("Tenant not found.")
        return TenantScope(tenant=tenant, actor=actor)

    if actor.tenant_id is None:
        raise Unauthorized()

    if tenant_id not in (None, ""):
        # compare canonical forms so a UUID or an upper-cased string is not a mismatch
        try:
            requested = str(UUID(str(tenant_id)))
        except (TypeError, ValueError):
            requested = None
        if requested != str(actor.tenant_id).lower():
            logger.warning(
                "tenant mismatch: user=%s own=%s requested=%s",
                actor.user_id,
                actor.tenant_id,
                tenant_id,
            )
            raise TenantMismatch()

    tenant = Tenant.objects.filter(id=actor.tenant_id, is_active=True).first()
    if tenant is None:
        raise Unauthorized()
    return TenantScope(tenant=tenant, actor=actor)


def scope_for_request(request) -> TenantScope:
    """
    Scope from ``?tenant_id=`` (required for super admins, optional otherwise).
    """
    from mill_core.iam.permissions import get_actor

    tenant_id = request.query_params.get("tenant_id") if hasattr(request, "query_params") else None
    return tenant_scope(get_actor(request), tenant_id)
