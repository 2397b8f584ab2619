# mill_core/iam/models.py
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from mill_core.iam.roles import Role
from mill_core.tenants.models import Tenant


class UserStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class UserProfile(models.Model):
    """
    Mill identity wrapper anchored to Django's AUTH_USER_MODEL.

    Never hard-deleted: audit history keeps pointing at it. Access is removed by
    flipping status to inactive.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="mill_profile")
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.PROTECT,
        related_name="user_profiles",
        null=True,
        blank=True,
    )

    role = models.CharField(max_length=32, choices=Role.choices, default=Role.VIEWER, db_index=True)
    status = models.CharField(max_length=16, choices=UserStatus.choices, default=UserStatus.ACTIVE, db_index=True)

    name = models.CharField(max_length=255, blank=True, default="")
    last_login_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "iam_user_profile"
        constraints = [
            models.CheckConstraint(
                condition=Q(role=Role.SUPER_ADMIN) | Q(tenant__isnull=False),
                name="ck_profile_tenant_required_unless_super_admin",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "status"]),
            models.Index(fields=["tenant", "role"]),
        ]

    def clean(self):
        if self.role != Role.SUPER_ADMIN and self.tenant_id is None:
            raise ValidationError({"tenant": "Only super admins may exist without a tenant."})

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def __str__(self) -> str:
        return f"{self.user.email or self.user.get_username()} ({self.role})"


class InvitationStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    EXPIRED = "expired", "Expired"


class UserInvitation(models.Model):
    """
    A pending seat in a tenant, claimed by whoever holds the token.
    Only operator and viewer seats are handed out this way.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="invitations")
    invited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="mill_invitations_sent",
        null=True,
        blank=True,
    )

    email = models.EmailField(max_length=160)
    role = models.CharField(max_length=32, choices=Role.choices)
    token = models.CharField(max_length=64, unique=True)
    status = models.CharField(
        max_length=16,
        choices=InvitationStatus.choices,
        default=InvitationStatus.PENDING,
        db_index=True,
    )

    expires_at = models.DateTimeField()
    accepted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "iam_user_invitation"
        indexes = [
            models.Index(fields=["tenant", "status"]),
            models.Index(fields=["status", "expires_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.email} -> {self.tenant_id} ({self.status})"
