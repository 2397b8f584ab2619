# mill_core/common/apps.py
from __future__ import annotations

from django.apps import AppConfig
from django.conf import settings


class CommonConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "mill_core.common"
    label = "common"

    def ready(self) -> None:
        from mill_core.common.events import EventBus

        self.event_bus = EventBus(queue_size=getattr(settings, "MILL_EVENT_QUEUE_SIZE", 100))
