# mill_core/iam/selectors.py
from __future__ import annotations

from django.db.models import Q, QuerySet

from mill_core.common.exceptions import NotFound
from mill_core.iam.authorization import authorize
from mill_core.iam.models import UserInvitation, UserProfile
from mill_core.iam.roles import Action
from mill_core.iam.scope import TenantScope


def list_users(
    *,
    scope: TenantScope,
    role: str | None = None,
    status: str | None = None,
    search: str | None = None,
) -> QuerySet[UserProfile]:
    authorize(scope.actor, Action.MANAGE_USERS, scope.tenant)

    qs = UserProfile.objects.select_related("user").filter(tenant_id=scope.tenant_id)
    if role:
        qs = qs.filter(role=role)
    if status:
        qs = qs.filter(status=status)
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(user__email__icontains=search))
    return qs.order_by("-created_at")


def get_user_profile(*, scope: TenantScope, profile_id) -> UserProfile:
    authorize(scope.actor, Action.MANAGE_USERS, scope.tenant)

    p = UserProfile.objects.select_related("user").filter(tenant_id=scope.tenant_id, id=profile_id).first()
    if p is None:
        raise NotFound("User not found.")
    return p


def list_invitations(*, scope: TenantScope, status: str | None = None) -> QuerySet[UserInvitation]:
    authorize(scope.actor, Action.MANAGE_USERS, scope.tenant)

    qs = UserInvitation.objects.select_related("tenant", "invited_by").filter(tenant_id=scope.tenant_id)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("-created_at")


def get_invitation_by_token(*, token: str) -> UserInvitation:
    # public lookup: the token itself is the credential
    inv = None
    if token:
        inv = UserInvitation.objects.select_related("tenant").filter(token=token).first()
    if inv is None:
        raise NotFound("Invitation not found.")
    return inv
