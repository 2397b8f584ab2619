import pytest
from django.contrib.auth import get_user_model

from mill_core.conftest import client_for

pytestmark = pytest.mark.django_db


def test_company_admin_lists_only_own_tenant_users(company_admin_user, operator_user, viewer_user, other_operator_user):
    res = client_for(company_admin_user).get("/api/v1/users/")

    assert res.status_code == 200, res.content
    emails = {u["email"] for u in res.json()["results"]}
    assert emails == {"owner@lakshmi.test", "clerk@lakshmi.test", "auditor@lakshmi.test"}


def test_operator_cannot_list_users(operator_user):
    res = client_for(operator_user).get("/api/v1/users/")

    assert res.status_code == 403
    assert res.json()["error"]["code"] == "permission_denied"


def test_company_admin_creates_user_in_own_tenant_by_default(company_admin_user, tenant):
    res = client_for(company_admin_user).post(
        "/api/v1/users/",
        {"email": "weigh@lakshmi.test", "role": "operator", "name": "Weighbridge"},
        format="json",
    )

    assert res.status_code == 201, res.content
    assert res.json()["tenant_id"] == str(tenant.id)
    assert res.json()["role"] == "operator"


def test_role_and_deactivate_actions(company_admin_user, viewer_user):
    c = client_for(company_admin_user)
    pid = viewer_user.mill_profile.id

    res = c.post(f"/api/v1/users/{pid}/role/", {"role": "operator"}, format="json")
    assert res.status_code == 200, res.content
    assert res.json()["role"] == "operator"

    res = c.post(f"/api/v1/users/{pid}/deactivate/")
    assert res.status_code == 200
    assert res.json()["status"] == "inactive"

    # a deactivated user is refused everywhere
    reloaded = get_user_model().objects.get(pk=viewer_user.pk)
    assert client_for(reloaded).get("/api/v1/products/").status_code == 403


def test_super_admin_needs_tenant_to_list_users(super_admin_user, tenant):
    c = client_for(super_admin_user)

    assert c.get("/api/v1/users/").status_code == 400
    assert c.get(f"/api/v1/users/?tenant_id={tenant.id}").status_code == 200


def test_me_reports_allowed_actions(viewer_user, tenant):
    res = client_for(viewer_user).get("/api/v1/me/")

    assert res.status_code == 200
    body = res.json()
    assert body["role"] == "viewer"
    assert body["tenant_id"] == str(tenant.id)
    assert body["allowed_actions"] == ["view_reports"]
