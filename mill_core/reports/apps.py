from __future__ import annotations

from django.apps import AppConfig
from django.conf import settings


class ReportsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "mill_core.reports"
    label = "reports"

    def ready(self) -> None:
        from mill_core.common.events import PRODUCT_UPDATED, TRANSACTION_CREATED, get_event_bus
        from mill_core.reports.cache import DashboardCache, get_dashboard_cache

        self.dashboard_cache = DashboardCache(
            ttl_seconds=getattr(settings, "MILL_DASHBOARD_CACHE_TTL_SECONDS", 30),
        )

        bus = get_event_bus()

        @bus.on(TRANSACTION_CREATED)
        @bus.on(PRODUCT_UPDATED)
        def invalidate_dashboard(event):
            get_dashboard_cache().invalidate_tenant(event.tenant_id)
