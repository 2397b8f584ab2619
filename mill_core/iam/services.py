# mill_core/iam/services.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.utils import timezone
from django.utils.crypto import get_random_string
from rest_framework.exceptions import ValidationError

from mill_core.audit.services import AuditService
from mill_core.common.exceptions import NotFound, Unauthorized
from mill_core.iam.authorization import Actor, authorize
from mill_core.iam.models import InvitationStatus, UserInvitation, UserProfile, UserStatus
from mill_core.iam.roles import Action, Role
from mill_core.iam.selectors import get_invitation_by_token
from mill_core.tenants.models import Tenant

logger = logging.getLogger(__name__)

# roles a company admin may hand out inside their own tenant
COMPANY_ADMIN_ASSIGNABLE = frozenset({Role.OPERATOR.value, Role.VIEWER.value})
# seats that may be offered by invitation, whoever sends it
INVITABLE_ROLES = COMPANY_ADMIN_ASSIGNABLE
INVITATION_TOKEN_LENGTH = 48


def _check_assignable(actor: Actor, role: str) -> None:
    if role not in Role.values:
        raise ValidationError({"role": f"Invalid role. Allowed: {list(Role.values)}"})
    if actor.is_super_admin:
        return
    if role not in COMPANY_ADMIN_ASSIGNABLE:
        logger.info("user=%s tried to assign role %s", actor.user_id, role)
        raise Unauthorized()


def _locked_profile(actor: Optional[Actor], profile_id: UUID) -> UserProfile:
    p = UserProfile.objects.select_for_update().select_related("user").filter(id=profile_id).first()
    if p is None:
        # outside their own tenant a missing id must look like any other denial
        if actor is None or not actor.is_super_admin:
            raise Unauthorized()
        raise NotFound("User not found.")
    return p


class UserService:
    """
    User administration. Profiles are never deleted; access is removed with deactivate().
    """

    @staticmethod
    @transaction.atomic
    def create_user(
        *,
        actor: Optional[Actor],
        email: str,
        password: Optional[str] = None,
        name: str = "",
        role: str = Role.VIEWER,
        tenant_id: Optional[UUID] = None,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> UserProfile:
        role = str(role)
        tenant_key = None if role == Role.SUPER_ADMIN.value else tenant_id

        if role != Role.SUPER_ADMIN.value and tenant_id is None:
            raise ValidationError({"tenant_id": "Only super admins may exist without a tenant."})

        authorize(actor, Action.MANAGE_USERS, tenant_key)
        _check_assignable(actor, role)

        email = (email or "").strip().lower()
        if not email:
            raise ValidationError({"email": "This field is required."})

        User = get_user_model()
        if User.objects.filter(email__iexact=email).exists():
            raise ValidationError({"email": "A user with this email already exists."})

        tenant = None
        if tenant_key is not None:
            tenant = Tenant.objects.filter(id=tenant_key).first()
            if tenant is None:
                raise NotFound("Tenant not found.")

        user = User.objects.create_user(username=email, email=email, password=password)
        if password is None:
            user.set_unusable_password()
            user.save(update_fields=["password"])

        profile = UserProfile(user=user, tenant=tenant, role=role, name=(name or "").strip())
        profile.clean()
        profile.save()

        AuditService.log(
            actor=actor,
            action="user.created",
            resource_type="User",
            resource_id=profile.id,
            tenant_id=tenant.id if tenant else None,
            changes={"email": email, "role": role},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return profile

    @staticmethod
    @transaction.atomic
    def change_role(
        *,
        actor: Optional[Actor],
        profile_id: UUID,
        role: str,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> UserProfile:
        p = _locked_profile(actor, profile_id)
        authorize(actor, Action.MANAGE_USERS, p)

        role = str(role)
        _check_assignable(actor, role)
        # a company admin may not demote a peer admin either
        if not actor.is_super_admin and p.role not in COMPANY_ADMIN_ASSIGNABLE:
            raise Unauthorized()

        if p.role == role:
            return p

        if role != Role.SUPER_ADMIN.value and p.tenant_id is None:
            raise ValidationError({"role": "A tenant-bound role needs a tenant."})

        before = p.role
        p.role = role
        if role == Role.SUPER_ADMIN.value:
            p.tenant = None
        p.save(update_fields=["role", "tenant", "updated_at"])

        AuditService.log(
            actor=actor,
            action="user.role_changed",
            resource_type="User",
            resource_id=p.id,
            tenant_id=p.tenant_id,
            changes={"role": {"from": before, "to": role}},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return p

    @staticmethod
    @transaction.atomic
    def set_status(
        *,
        actor: Optional[Actor],
        profile_id: UUID,
        status: str,
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> UserProfile:
        if status not in UserStatus.values:
            raise ValidationError({"status": f"Invalid status. Allowed: {list(UserStatus.values)}"})

        p = _locked_profile(actor, profile_id)
        authorize(actor, Action.MANAGE_USERS, p)

        if status == UserStatus.INACTIVE and p.user_id == actor.user_id:
            raise ValidationError({"status": "You cannot deactivate your own account."})

        # idempotent no-op
        if p.status == status:
            return p

        before = p.status
        p.status = status
        p.save(update_fields=["status", "updated_at"])

        AuditService.log(
            actor=actor,
            action="user.activated" if status == UserStatus.ACTIVE else "user.deactivated",
            resource_type="User",
            resource_id=p.id,
            tenant_id=p.tenant_id,
            changes={"status": {"from": before, "to": status}},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return p

    @staticmethod
    def activate(*, actor: Optional[Actor], profile_id: UUID, **meta) -> UserProfile:
        return UserService.set_status(actor=actor, profile_id=profile_id, status=UserStatus.ACTIVE, **meta)

    @staticmethod
    def deactivate(*, actor: Optional[Actor], profile_id: UUID, **meta) -> UserProfile:
        return UserService.set_status(actor=actor, profile_id=profile_id, status=UserStatus.INACTIVE, **meta)

    # -----------------------------
    # invitations
    # -----------------------------

    @staticmethod
    @transaction.atomic
    def invite(
        *,
        actor: Optional[Actor],
        email: str,
        role: str = Role.VIEWER,
        tenant_id: Optional[UUID],
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> UserInvitation:
        if tenant_id is None:
            raise ValidationError({"tenant_id": "This field is required."})
        authorize(actor, Action.MANAGE_USERS, tenant_id)

        role = str(role)
        if role not in INVITABLE_ROLES:
            raise ValidationError({"role": "Only operator and viewer seats can be offered by invitation."})

        email = (email or "").strip().lower()
        try:
            validate_email(email)
        except DjangoValidationError as exc:
            raise ValidationError({"email": exc.messages})

        if get_user_model().objects.filter(email__iexact=email).exists():
            raise ValidationError({"email": "A user with this email already exists."})

        tenant = Tenant.objects.filter(id=tenant_id).first()
        if tenant is None:
            raise NotFound("Tenant not found.")
        if not tenant.is_active:
            raise ValidationError({"tenant_id": "Tenant is deactivated."})

        now = timezone.now()
        if UserInvitation.objects.filter(
            tenant=tenant,
            email=email,
            status=InvitationStatus.PENDING,
            expires_at__gte=now,
        ).exists():
            raise ValidationError({"email": "This address already has a pending invitation."})

        inv = UserInvitation.objects.create(
            tenant=tenant,
            invited_by_id=actor.user_id,
            email=email,
            role=role,
            token=get_random_string(INVITATION_TOKEN_LENGTH),
            expires_at=now + timedelta(days=getattr(settings, "MILL_INVITATION_TTL_DAYS", 7)),
        )

        AuditService.log(
            actor=actor,
            action="user.invited",
            resource_type="UserInvitation",
            resource_id=inv.id,
            tenant_id=tenant.id,
            changes={"email": email, "role": role, "expires_at": inv.expires_at.isoformat()},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        return inv

    @staticmethod
    def accept_invitation(
        *,
        token: str,
        password: str,
        name: str = "",
        ip_address: Optional[str] = None,
        user_agent: str = "",
    ) -> UserProfile:
        """
        Claim an invitation: creates an active user with the invited email,
        role and tenant. A lapsed invitation is marked expired (and stays so)
        before the error is raised.
        """
        inv = get_invitation_by_token(token=token)

        now = timezone.now()
        if inv.status == InvitationStatus.PENDING and inv.expires_at < now:
            UserService._expire(inv.id, inv.tenant_id, inv.email, now)
            raise ValidationError({"token": "This invitation has expired."})

        with transaction.atomic():
            inv = UserInvitation.objects.select_for_update().select_related("tenant").get(id=inv.id)

            if inv.status == InvitationStatus.ACCEPTED:
                raise ValidationError({"token": "This invitation has already been accepted."})
            if inv.status == InvitationStatus.EXPIRED:
                raise ValidationError({"token": "This invitation has expired."})
            if not inv.tenant.is_active:
                raise ValidationError({"token": "This invitation is no longer valid."})

            User = get_user_model()
            if User.objects.filter(email__iexact=inv.email).exists():
                raise ValidationError({"email": "A user with this email already exists."})

            if not password:
                raise ValidationError({"password": "This field is required."})
            try:
                validate_password(password)
            except DjangoValidationError as exc:
                raise ValidationError({"password": exc.messages})

            user = User.objects.create_user(username=inv.email, email=inv.email, password=password)
            profile = UserProfile(user=user, tenant=inv.tenant, role=inv.role, name=(name or "").strip())
            profile.clean()
            profile.save()

            inv.status = InvitationStatus.ACCEPTED
            inv.accepted_at = now
            inv.save(update_fields=["status", "accepted_at", "updated_at"])

            AuditService.log(
                actor=Actor(user_id=user.id, role=profile.role, tenant_id=inv.tenant_id),
                action="user.invitation_accepted",
                resource_type="User",
                resource_id=profile.id,
                tenant_id=inv.tenant_id,
                changes={"invitation_id": str(inv.id), "email": inv.email, "role": inv.role},
                ip_address=ip_address,
                user_agent=user_agent,
            )
        logger.info("invitation %s accepted by user %s", inv.id, user.id)
        return profile

    @staticmethod
    @transaction.atomic
    def _expire(invitation_id, tenant_id, email: str, now) -> bool:
        updated = UserInvitation.objects.filter(id=invitation_id, status=InvitationStatus.PENDING).update(
            status=InvitationStatus.EXPIRED,
            updated_at=now,
        )
        if not updated:
            return False
        AuditService.log(
            actor=None,
            action="user.invitation_expired",
            resource_type="UserInvitation",
            resource_id=invitation_id,
            tenant_id=tenant_id,
            changes={"email": email},
        )
        return True

    @staticmethod
    def expire_invitations(*, now=None) -> int:
        """
        Mark every pending invitation past its expiry as expired. Returns how many changed.
        """
        now = now or timezone.now()
        stale = UserInvitation.objects.filter(status=InvitationStatus.PENDING, expires_at__lt=now)

        count = 0
        for inv_id, tenant_id, email in stale.values_list("id", "tenant_id", "email"):
            if UserService._expire(inv_id, tenant_id, email, now):
                count += 1
        if count:
            logger.info("expired %d invitation(s)", count)
        return count
