import pytest
from django.contrib.auth.models import AnonymousUser

from mill_core.conftest import make_user
from mill_core.iam.authorization import actor_for_user
from mill_core.iam.models import UserProfile, UserStatus
from mill_core.iam.roles import Role

pytestmark = pytest.mark.django_db


def test_actor_carries_role_and_tenant(operator_user, tenant):
    actor = actor_for_user(operator_user)

    assert actor.user_id == operator_user.id
    assert actor.role == Role.OPERATOR.value
    assert actor.tenant_id == str(tenant.id)
    assert not actor.is_super_admin


def test_super_admin_has_no_tenant(super_admin_user):
    actor = actor_for_user(super_admin_user)

    assert actor.is_super_admin
    assert actor.tenant_id is None


def test_anonymous_user_has_no_actor():
    assert actor_for_user(AnonymousUser()) is None
    assert actor_for_user(None) is None


def test_user_without_profile_has_no_actor(django_user_model):
    u = django_user_model.objects.create_user(username="bare", password="x")

    assert actor_for_user(u) is None


def test_inactive_profile_has_no_actor(tenant):
    u = make_user("gone@lakshmi.test", Role.OPERATOR, tenant, status=UserStatus.INACTIVE)

    assert actor_for_user(u) is None


def test_profile_requires_tenant_unless_super_admin(tenant):
    from django.core.exceptions import ValidationError

    p = UserProfile(role=Role.VIEWER, tenant=None)
    with pytest.raises(ValidationError):
        p.clean()
