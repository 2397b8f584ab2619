# mill_core/tenants/selectors.py
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.db.models import Count, Q, QuerySet

from mill_core.tenants.models import Tenant

logger = logging.getLogger(__name__)


def tenant_qs() -> QuerySet[Tenant]:
    return Tenant.objects.all()


def tenants_with_stats(*, search: str | None = None) -> QuerySet[Tenant]:
    """
    Tenants annotated with user_count (active profiles), newest first.
    """
    qs = Tenant.objects.annotate(
        user_count=Count("user_profiles", filter=Q(user_profiles__status="active"), distinct=True),
    )
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(slug__icontains=search))
    return qs.order_by("-created_at")


def get_tenant_or_none(*, tenant_id: UUID) -> Optional[Tenant]:
    return Tenant.objects.filter(id=tenant_id).first()


def low_stock_threshold(tenant: Tenant) -> Decimal:
    """
    Per-tenant override from tenant.settings, else MILL_LOW_STOCK_THRESHOLD.
    """
    raw = (tenant.settings or {}).get("low_stock_threshold")
    if raw not in (None, ""):
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            logger.warning("tenant %s has a malformed low_stock_threshold: %r", tenant.id, raw)
    return Decimal(str(getattr(settings, "MILL_LOW_STOCK_THRESHOLD", 50)))
