# mill_core/dashboard/models.py
import uuid

from django.conf import settings
from django.db import models

WIDGETS = (
    "inventory",
    "alerts",
    "financial",
    "comparison",
    "trend",
    "top_products_in",
    "top_products_out",
    "top_farmers",
    "top_customers",
    "recent",
)


def default_widget_order():
    return list(WIDGETS)


class DashboardPreference(models.Model):
    """
    Per-user dashboard layout. Only its owner reads or changes it.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="dashboard_preference")

    widget_order = models.JSONField(default=default_widget_order, blank=True)
    hidden_widgets = models.JSONField(default=list, blank=True)
    default_period = models.CharField(max_length=32, default="this_month")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "dashboard_preference"

    def __str__(self) -> str:
        return f"preferences for user {self.user_id}"
