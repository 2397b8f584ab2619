# mill_core/tenants/models.py
import uuid

from django.core.validators import RegexValidator
from django.db import models

slug_validator = RegexValidator(
    regex=r"^[a-z0-9-]+$",
    message="must contain only lowercase letters, numbers, and hyphens",
)


class Tenant(models.Model):
    """
    A mill (customer organization).
    Root of all scoping in the system. Deactivated, never deleted.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    slug = models.CharField(max_length=255, unique=True, validators=[slug_validator])

    is_active = models.BooleanField(default=True, db_index=True)

    contact_email = models.EmailField(max_length=160, blank=True, default="")
    contact_phone = models.CharField(max_length=20, blank=True, default="")

    # default_unit, timezone, date_format, low_stock_threshold, ...
    settings = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenants_tenant"
        indexes = [
            models.Index(fields=["is_active"]),
            models.Index(fields=["created_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.slug})"
