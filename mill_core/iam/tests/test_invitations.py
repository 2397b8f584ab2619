from datetime import timedelta
from io import StringIO

import pytest
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from mill_core.audit.models import AuditLogEntry
from mill_core.common.exceptions import NotFound, Unauthorized
from mill_core.conftest import client_for
from mill_core.iam.authorization import actor_for_user
from mill_core.iam.models import InvitationStatus, UserInvitation, UserStatus
from mill_core.iam.roles import Role
from mill_core.iam.services import UserService
from mill_core.tenants.models import Tenant
from mill_core.tenants.services import TenantService

pytestmark = pytest.mark.django_db

PASSWORD = "Paddy-Harvest-2024"


def _lapse(inv):
    UserInvitation.objects.filter(pk=inv.pk).update(expires_at=timezone.now() - timedelta(hours=1))


def test_company_admin_invites_into_own_tenant(company_admin, tenant, settings):
    settings.MILL_INVITATION_TTL_DAYS = 3
    before = timezone.now()

    inv = UserService.invite(actor=company_admin, email=" Weigh@Lakshmi.test ", role=Role.OPERATOR, tenant_id=tenant.id)

    assert inv.email == "weigh@lakshmi.test"
    assert inv.status == InvitationStatus.PENDING
    assert inv.invited_by_id == company_admin.user_id
    assert len(inv.token) == 48
    assert before + timedelta(days=3) <= inv.expires_at <= timezone.now() + timedelta(days=3)

    entry = AuditLogEntry.objects.get(action="user.invited", resource_id=str(inv.id))
    assert entry.tenant_id == tenant.id
    assert entry.changes["role"] == "operator"
    assert inv.token not in str(entry.changes)


@pytest.mark.parametrize("role", [Role.COMPANY_ADMIN, Role.SUPER_ADMIN, "owner"])
def test_only_operator_and_viewer_seats_are_invitable(super_admin, tenant, role):
    with pytest.raises(ValidationError):
        UserService.invite(actor=super_admin, email="boss@lakshmi.test", role=role, tenant_id=tenant.id)


def test_invite_needs_manage_users_in_that_tenant(company_admin, operator, other_tenant, tenant):
    with pytest.raises(Unauthorized):
        UserService.invite(actor=company_admin, email="x@ganga.test", role=Role.VIEWER, tenant_id=other_tenant.id)
    with pytest.raises(Unauthorized):
        UserService.invite(actor=operator, email="x@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)
    assert not UserInvitation.objects.exists()


def test_invite_rejects_existing_user_and_pending_duplicate(company_admin, tenant, operator_user):
    with pytest.raises(ValidationError):
        UserService.invite(actor=company_admin, email="CLERK@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)

    UserService.invite(actor=company_admin, email="new@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)
    with pytest.raises(ValidationError):
        UserService.invite(actor=company_admin, email="new@lakshmi.test", role=Role.OPERATOR, tenant_id=tenant.id)


def test_lapsed_pending_invitation_does_not_block_a_new_one(company_admin, tenant):
    first = UserService.invite(actor=company_admin, email="new@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)
    _lapse(first)

    second = UserService.invite(actor=company_admin, email="new@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)

    assert second.token != first.token


def test_invite_into_deactivated_tenant_is_rejected(super_admin, tenant):
    Tenant.objects.filter(pk=tenant.pk).update(is_active=False)

    with pytest.raises(ValidationError):
        UserService.invite(actor=super_admin, email="new@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)


def test_accept_creates_active_user_with_invited_role(company_admin, tenant):
    inv = UserService.invite(actor=company_admin, email="new@lakshmi.test", role=Role.OPERATOR, tenant_id=tenant.id)

    p = UserService.accept_invitation(token=inv.token, password=PASSWORD, name="  Weighbridge  ")

    assert p.tenant_id == tenant.id
    assert p.role == Role.OPERATOR
    assert p.status == UserStatus.ACTIVE
    assert p.name == "Weighbridge"
    assert p.user.check_password(PASSWORD)

    user = get_user_model().objects.get(email="new@lakshmi.test")
    assert actor_for_user(user).tenant_id == str(tenant.id)

    inv.refresh_from_db()
    assert inv.status == InvitationStatus.ACCEPTED
    assert inv.accepted_at is not None

    entry = AuditLogEntry.objects.get(action="user.invitation_accepted")
    assert entry.user_id == user.id
    assert entry.resource_id == str(p.id)


def test_accept_twice_fails(company_admin, tenant):
    inv = UserService.invite(actor=company_admin, email="new@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)
    UserService.accept_invitation(token=inv.token, password=PASSWORD)

    with pytest.raises(ValidationError):
        UserService.accept_invitation(token=inv.token, password=PASSWORD)
    assert get_user_model().objects.filter(email="new@lakshmi.test").count() == 1


def test_accept_unknown_token_is_not_found(db):
    with pytest.raises(NotFound):
        UserService.accept_invitation(token="no-such-token", password=PASSWORD)


def test_accept_rejects_weak_password_and_leaves_invitation_pending(company_admin, tenant):
    inv = UserService.invite(actor=company_admin, email="new@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)

    with pytest.raises(ValidationError):
        UserService.accept_invitation(token=inv.token, password="12345678")

    inv.refresh_from_db()
    assert inv.status == InvitationStatus.PENDING
    assert not get_user_model().objects.filter(email="new@lakshmi.test").exists()


def test_accept_after_expiry_marks_invitation_expired(company_admin, tenant):
    inv = UserService.invite(actor=company_admin, email="new@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)
    _lapse(inv)

    with pytest.raises(ValidationError):
        UserService.accept_invitation(token=inv.token, password=PASSWORD)

    inv.refresh_from_db()
    assert inv.status == InvitationStatus.EXPIRED
    assert AuditLogEntry.objects.filter(action="user.invitation_expired", resource_id=str(inv.id)).count() == 1
    assert not get_user_model().objects.filter(email="new@lakshmi.test").exists()

    # still refused once marked
    with pytest.raises(ValidationError):
        UserService.accept_invitation(token=inv.token, password=PASSWORD)


def test_expire_invitations_only_touches_lapsed_pending(company_admin, tenant):
    lapsed = UserService.invite(actor=company_admin, email="a@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)
    UserService.invite(actor=company_admin, email="b@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)
    accepted = UserService.invite(actor=company_admin, email="c@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)
    UserService.accept_invitation(token=accepted.token, password=PASSWORD)
    _lapse(lapsed)
    _lapse(accepted)

    assert UserService.expire_invitations() == 1
    assert UserService.expire_invitations() == 0

    statuses = dict(UserInvitation.objects.values_list("email", "status"))
    assert statuses == {
        "a@lakshmi.test": InvitationStatus.EXPIRED,
        "b@lakshmi.test": InvitationStatus.PENDING,
        "c@lakshmi.test": InvitationStatus.ACCEPTED,
    }


def test_expire_invitations_command(company_admin, tenant):
    inv = UserService.invite(actor=company_admin, email="a@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)
    _lapse(inv)
    out = StringIO()

    call_command("expire_invitations", stdout=out)

    assert "Invitations expired: 1" in out.getvalue()


# ----------------------------
# HTTP
# ----------------------------

def test_invite_and_list_over_api(company_admin_user, tenant, other_tenant, super_admin):
    UserService.invite(actor=super_admin, email="x@ganga.test", role=Role.VIEWER, tenant_id=other_tenant.id)
    c = client_for(company_admin_user)

    res = c.post("/api/v1/users/invite/", {"email": "new@lakshmi.test", "role": "operator"}, format="json")
    assert res.status_code == 201, res.content
    body = res.json()
    assert body["tenant_id"] == str(tenant.id)
    assert body["token"]

    listed = c.get("/api/v1/users/invitations/")
    assert listed.status_code == 200
    assert [i["email"] for i in listed.json()["results"]] == ["new@lakshmi.test"]


def test_invite_api_rejects_admin_role(company_admin_user):
    res = client_for(company_admin_user).post(
        "/api/v1/users/invite/", {"email": "boss@lakshmi.test", "role": "company_admin"}, format="json"
    )

    assert res.status_code == 400


def test_operator_cannot_invite_over_api(operator_user):
    res = client_for(operator_user).post("/api/v1/users/invite/", {"email": "x@lakshmi.test"}, format="json")

    assert res.status_code == 403


def test_anonymous_views_and_accepts_invitation(company_admin, tenant):
    from rest_framework.test import APIClient

    inv = UserService.invite(actor=company_admin, email="new@lakshmi.test", role=Role.VIEWER, tenant_id=tenant.id)
    c = APIClient()

    res = c.get(f"/api/v1/auth/invitations/{inv.token}/")
    assert res.status_code == 200, res.content
    assert res.json()["tenant_name"] == tenant.name
    assert "token" not in res.json()

    res = c.post(f"/api/v1/auth/invitations/{inv.token}/accept/", {"password": PASSWORD, "name": "New"}, format="json")
    assert res.status_code == 201, res.content
    assert res.json()["email"] == "new@lakshmi.test"
    assert res.json()["role"] == "viewer"

    again = c.post(f"/api/v1/auth/invitations/{inv.token}/accept/", {"password": PASSWORD}, format="json")
    assert again.status_code == 400
    assert c.get("/api/v1/auth/invitations/nope/").status_code == 404


# ----------------------------
# tenant onboarding
# ----------------------------

def test_create_tenant_with_admin(super_admin):
    t, admin = TenantService.create_with_admin(
        actor=super_admin,
        name="Krishna Rice Mill",
        slug="krishna",
        admin_email="Owner@Krishna.test",
        admin_name="Owner",
    )

    assert admin.tenant_id == t.id
    assert admin.role == Role.COMPANY_ADMIN
    assert admin.user.email == "owner@krishna.test"
    assert AuditLogEntry.objects.filter(action="tenant.created", tenant=t).exists()
    assert AuditLogEntry.objects.filter(action="user.created", resource_id=str(admin.id)).exists()


def test_create_tenant_with_admin_is_all_or_nothing(super_admin, operator_user):
    with pytest.raises(ValidationError):
        TenantService.create_with_admin(
            actor=super_admin,
            name="Krishna Rice Mill",
            slug="krishna",
            admin_email="clerk@lakshmi.test",
        )

    assert not Tenant.objects.filter(slug="krishna").exists()


def test_create_tenant_with_admin_is_super_admin_only(company_admin):
    with pytest.raises(Unauthorized):
        TenantService.create_with_admin(actor=company_admin, name="K", slug="krishna", admin_email="o@krishna.test")


def test_tenant_create_api_with_admin(super_admin_user):
    res = client_for(super_admin_user).post(
        "/api/v1/tenants/",
        {"name": "Krishna Rice Mill", "slug": "krishna", "admin_email": "owner@krishna.test", "admin_password": PASSWORD},
        format="json",
    )

    assert res.status_code == 201, res.content
    body = res.json()
    assert body["admin"]["role"] == "company_admin"
    assert body["admin"]["tenant_id"] == body["id"]
