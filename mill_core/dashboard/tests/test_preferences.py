import pytest
from rest_framework.exceptions import ValidationError

from mill_core.common.exceptions import Unauthorized
from mill_core.conftest import client_for
from mill_core.dashboard.models import WIDGETS, DashboardPreference
from mill_core.dashboard.services import DashboardPreferenceService

pytestmark = pytest.mark.django_db


def test_get_or_create_defaults(viewer):
    pref = DashboardPreferenceService.get_or_create(actor=viewer)

    assert pref.widget_order == list(WIDGETS)
    assert pref.hidden_widgets == []
    assert pref.default_period == "this_month"
    assert DashboardPreferenceService.get_or_create(actor=viewer).id == pref.id


def test_reorder_keeps_unlisted_widgets_at_the_end(viewer):
    pref = DashboardPreferenceService.update_widget_order(actor=viewer, widget_order=["recent", "alerts"])

    assert pref.widget_order[:2] == ["recent", "alerts"]
    assert sorted(pref.widget_order) == sorted(WIDGETS)


@pytest.mark.parametrize("order", [["recent", "recent"], ["weather"], "recent"])
def test_reorder_rejects_bad_input(viewer, order):
    with pytest.raises(ValidationError):
        DashboardPreferenceService.update_widget_order(actor=viewer, widget_order=order)


def test_toggle_visibility(viewer):
    pref = DashboardPreferenceService.toggle_widget_visibility(actor=viewer, widget="trend")
    assert pref.hidden_widgets == ["trend"]

    pref = DashboardPreferenceService.toggle_widget_visibility(actor=viewer, widget="trend")
    assert pref.hidden_widgets == []


def test_default_period_must_be_named(viewer):
    assert DashboardPreferenceService.set_default_period(actor=viewer, period="today").default_period == "today"

    with pytest.raises(ValidationError):
        DashboardPreferenceService.set_default_period(actor=viewer, period="custom")


def test_reset_layout(viewer):
    DashboardPreferenceService.update_widget_order(actor=viewer, widget_order=["recent"])
    DashboardPreferenceService.toggle_widget_visibility(actor=viewer, widget="trend")
    DashboardPreferenceService.set_default_period(actor=viewer, period="this_year")

    pref = DashboardPreferenceService.reset_layout(actor=viewer)

    assert pref.widget_order == list(WIDGETS)
    assert pref.hidden_widgets == []
    assert pref.default_period == "this_month"


def test_preferences_are_per_user(viewer, operator):
    DashboardPreferenceService.toggle_widget_visibility(actor=viewer, widget="trend")

    assert DashboardPreferenceService.get_or_create(actor=operator).hidden_widgets == []
    assert DashboardPreference.objects.count() == 2


def test_no_actor():
    with pytest.raises(Unauthorized):
        DashboardPreferenceService.get_or_create(actor=None)


def test_preferences_api(viewer_user):
    c = client_for(viewer_user)

    res = c.get("/api/v1/dashboard/preferences/")
    assert res.status_code == 200, res.content
    assert res.json()["default_period"] == "this_month"

    res = c.patch("/api/v1/dashboard/preferences/", {"widget_order": ["alerts"], "default_period": "today"}, format="json")
    assert res.status_code == 200, res.content
    assert res.json()["widget_order"][0] == "alerts"
    assert res.json()["default_period"] == "today"

    res = c.post("/api/v1/dashboard/preferences/toggle/", {"widget": "recent"}, format="json")
    assert res.json()["hidden_widgets"] == ["recent"]

    res = c.post("/api/v1/dashboard/preferences/reset/")
    assert res.json()["hidden_widgets"] == []

    assert c.patch("/api/v1/dashboard/preferences/", {"default_period": "someday"}, format="json").status_code == 400


def test_preferences_api_needs_an_active_profile(django_user_model):
    bare = django_user_model.objects.create_user(username="bare", password="x")

    assert client_for(bare).get("/api/v1/dashboard/preferences/").status_code == 403
