# mill_core/tenants/services.py
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework.exceptions import ValidationError

from mill_core.audit.services import AuditService
from mill_core.common.exceptions import NotFound
from mill_core.iam.authorization import Actor, authorize
from mill_core.iam.models import UserProfile
from mill_core.iam.roles import Action, Role
from mill_core.iam.scope import tenant_scope
from mill_core.iam.services import UserService
from mill_core.tenants.models import Tenant, slug_validator

logger = logging.getLogger(__name__)

# keys the application reads; anything else is stored as-is
KNOWN_SETTINGS = ("default_unit", "timezone", "date_format", "low_stock_threshold")


def _validate_settings(settings: dict) -> dict:
    if settings is None or not isinstance(settings, dict):
        raise ValidationError({"settings": "Must be a JSON object."})

    cleaned = dict(settings)
    if "low_stock_threshold" in cleaned and cleaned["low_stock_threshold"] is not None:
        try:
            threshold = Decimal(str(cleaned["low_stock_threshold"]))
        except InvalidOperation:
            raise ValidationError({"settings": {"low_stock_threshold": "Must be a number."}})
        if not threshold.is_finite() or threshold < 0:
            raise ValidationError({"settings": {"low_stock_threshold": "Must be zero or greater."}})
        # JSON has no decimal type
        cleaned["low_stock_threshold"] = str(threshold)
    return cleaned


class TenantService:
    """
    All Tenant mutations live here (write-model boundary).
    """

    @staticmethod
    @transaction.atomic
    def create(
        *,
        actor: Optional[Actor],
        name: str,
        slug: str,
        contact_email: str = "",
        contact_phone: str = "",
        settings: Optional[dict] = None,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> Tenant:
        authorize(actor, Action.MANAGE_TENANTS)

        name = (name or "").strip()
        slug = (slug or "").strip()

        if not name:
            raise ValidationError({"name": "This field is required."})
        if not slug:
            raise ValidationError({"slug": "This field is required."})
        try:
            slug_validator(slug)
        except DjangoValidationError as exc:
            raise ValidationError({"slug": exc.messages})
        if Tenant.objects.filter(slug=slug).exists():
            raise ValidationError({"slug": "A tenant with this slug already exists."})

        t = Tenant.objects.create(
            name=name,
            slug=slug,
            contact_email=(contact_email or "").strip(),
            contact_phone=(contact_phone or "").strip(),
            settings=_validate_settings(settings or {}),
        )

        AuditService.log(
            actor=actor,
            action="tenant.created",
            resource_type="Tenant",
            resource_id=t.id,
            tenant_id=t.id,
            changes={"name": t.name, "slug": t.slug},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("tenant created: %s (%s)", t.slug, t.id)
        return t

    @staticmethod
    @transaction.atomic
    def create_with_admin(
        *,
        actor: Optional[Actor],
        name: str,
        slug: str,
        admin_email: str,
        admin_name: str = "",
        admin_password: Optional[str] = None,
        contact_email: str = "",
        contact_phone: str = "",
        settings: Optional[dict] = None,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> Tuple[Tenant, UserProfile]:
        """
        Onboard a mill: the tenant and its first company admin, or neither.
        """
        authorize(actor, Action.MANAGE_TENANTS)
        meta = {"ip_address": ip_address, "user_agent": user_agent}

        t = TenantService.create(
            actor=actor,
            name=name,
            slug=slug,
            contact_email=contact_email,
            contact_phone=contact_phone,
            settings=settings,
            **meta,
        )
        admin = UserService.create_user(
            actor=actor,
            email=admin_email,
            password=admin_password,
            name=admin_name,
            role=Role.COMPANY_ADMIN,
            tenant_id=t.id,
            **meta,
        )
        return t, admin

    @staticmethod
    @transaction.atomic
    def update_settings(
        *,
        actor: Optional[Actor],
        tenant_id: UUID,
        settings: dict,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> Tenant:
        """
        Merge ``settings`` into the tenant's settings.
        Company admins may only touch their own tenant; tenant_scope enforces that.
        """
        scope = tenant_scope(actor, tenant_id)
        authorize(actor, Action.MANAGE_TENANT_SETTINGS, scope.tenant)

        incoming = _validate_settings(settings)

        t = Tenant.objects.select_for_update().get(id=scope.tenant_id)
        before = dict(t.settings or {})
        t.settings = {**before, **incoming}
        t.save(update_fields=["settings", "updated_at"])

        AuditService.log(
            actor=actor,
            action="tenant.settings_updated",
            resource_type="Tenant",
            resource_id=t.id,
            tenant_id=t.id,
            changes={"before": before, "after": t.settings},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return t

    @staticmethod
    @transaction.atomic
    def set_active(
        *,
        actor: Optional[Actor],
        tenant_id: UUID,
        is_active: bool,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> Tenant:
        authorize(actor, Action.MANAGE_TENANTS)

        t = Tenant.objects.select_for_update().filter(id=tenant_id).first()
        if t is None:
            raise NotFound("Tenant not found.")

        # idempotent no-op
        if t.is_active == is_active:
            return t

        t.is_active = is_active
        t.save(update_fields=["is_active", "updated_at"])

        AuditService.log(
            actor=actor,
            action="tenant.activated" if is_active else "tenant.deactivated",
            resource_type="Tenant",
            resource_id=t.id,
            tenant_id=t.id,
            changes={"is_active": {"from": not is_active, "to": is_active}},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("tenant %s %s", t.slug, "activated" if is_active else "deactivated")
        return t

    @staticmethod
    def activate(*, actor: Optional[Actor], tenant_id: UUID, **meta) -> Tenant:
        return TenantService.set_active(actor=actor, tenant_id=tenant_id, is_active=True, **meta)

    @staticmethod
    def deactivate(*, actor: Optional[Actor], tenant_id: UUID, **meta) -> Tenant:
        # deactivate only; tenants are never deleted
        return TenantService.set_active(actor=actor, tenant_id=tenant_id, is_active=False, **meta)
