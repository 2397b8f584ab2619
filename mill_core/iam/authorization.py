# mill_core/iam/authorization.py
"""
Authorization engine.

    can(actor, action, resource) -> bool      pure, total, fail-closed
    authorize(actor, action, resource)        raises Unauthorized

``resource`` is whatever the caller is about to touch: a model instance with a
tenant_id, a Tenant, a mapping with "tenant_id", a bare tenant id, or None.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from mill_core.common.exceptions import Unauthorized
from mill_core.iam.roles import PERMISSION_TABLE, TENANT_BOUND_ROLES, Role, Rule

logger = logging.getLogger(__name__)


def _norm_tenant_id(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value).lower()


@dataclass(frozen=True)
class Actor:
    user_id: Any
    role: str
    tenant_id: Optional[str] = None

    def __post_init__(self):
        # kept as the canonical lower-case string
        object.__setattr__(self, "tenant_id", _norm_tenant_id(self.tenant_id))

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN.value


def actor_for_user(user) -> Optional[Actor]:
    """
    Build the Actor for a Django user, or None when the user may not act at all
    (anonymous, no mill profile, inactive profile, tenant-bound role without a tenant).
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return None

    from mill_core.iam.models import UserProfile, UserStatus

    try:
        profile = user.mill_profile
    except UserProfile.DoesNotExist:
        return None

    if profile.status != UserStatus.ACTIVE:
        return None

    tenant_id = _norm_tenant_id(profile.tenant_id)
    if profile.role in TENANT_BOUND_ROLES and tenant_id is None:
        return None

    return Actor(user_id=user.id, role=str(profile.role), tenant_id=tenant_id)


def resource_tenant_id(resource) -> Optional[str]:
    """
    Tenant id a resource belongs to, or None if it cannot be determined.
    """
    from mill_core.tenants.models import Tenant

    if resource is None:
        return None
    if isinstance(resource, Tenant):
        return _norm_tenant_id(resource.pk)
    if isinstance(resource, (UUID, str)):
        return _norm_tenant_id(resource)
    if isinstance(resource, Mapping):
        return _norm_tenant_id(resource.get("tenant_id"))
    return _norm_tenant_id(getattr(resource, "tenant_id", None))


def can(actor: Optional[Actor], action, resource=None) -> bool:
    if actor is None:
        return False

    try:
        role = str(getattr(actor, "role", "") or "")
        if role == Role.SUPER_ADMIN.value:
            return True

        rule = PERMISSION_TABLE.get(role, {}).get(str(action))
        if rule == Rule.ALLOW.value:
            return True
        if rule == Rule.SAME_TENANT.value:
            actor_tenant = _norm_tenant_id(getattr(actor, "tenant_id", None))
            return actor_tenant is not None and actor_tenant == resource_tenant_id(resource)
        return False
    except Exception:
        # malformed actor/resource objects must never turn into a 500
        return False


def authorize(actor: Optional[Actor], action, resource=None) -> None:
    if can(actor, action, resource):
        return
    logger.info(
        "denied: user=%s role=%s action=%s",
        getattr(actor, "user_id", "anonymous"),
        getattr(actor, "role", None),
        action,
    )
    raise Unauthorized()
