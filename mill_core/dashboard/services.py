# mill_core/dashboard/services.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from django.db import transaction
from rest_framework.exceptions import ValidationError

from mill_core.common.exceptions import Unauthorized
from mill_core.dashboard.models import WIDGETS, DashboardPreference, default_widget_order
from mill_core.iam.authorization import Actor
from mill_core.reports.periods import DEFAULT_SELECTOR, NAMED_SELECTORS

logger = logging.getLogger(__name__)


def _widget_list(field: str, value: Iterable) -> List[str]:
    if not isinstance(value, (list, tuple)):
        raise ValidationError({field: "Must be a list of widget names."})
    names = [str(v) for v in value]
    unknown = sorted(set(names) - set(WIDGETS))
    if unknown:
        raise ValidationError({field: f"Unknown widgets: {', '.join(unknown)}."})
    if len(set(names)) != len(names):
        raise ValidationError({field: "Widgets may appear only once."})
    return names


class DashboardPreferenceService:
    """
    Layout of the caller's own dashboard. There is no way to touch another user's row.
    """

    @staticmethod
    def _owner(actor: Optional[Actor]):
        if actor is None:
            raise Unauthorized()
        return actor.user_id

    @staticmethod
    def get_or_create(*, actor: Optional[Actor]) -> DashboardPreference:
        user_id = DashboardPreferenceService._owner(actor)
        pref, created = DashboardPreference.objects.get_or_create(user_id=user_id)
        if created:
            logger.debug("dashboard preferences created for user %s", user_id)
        return pref

    @staticmethod
    @transaction.atomic
    def _locked(actor: Optional[Actor]) -> DashboardPreference:
        user_id = DashboardPreferenceService._owner(actor)
        DashboardPreference.objects.get_or_create(user_id=user_id)
        return DashboardPreference.objects.select_for_update().get(user_id=user_id)

    @staticmethod
    @transaction.atomic
    def update_widget_order(*, actor: Optional[Actor], widget_order) -> DashboardPreference:
        """
        Widgets left out of ``widget_order`` keep their relative order at the end.
        """
        order = _widget_list("widget_order", widget_order)
        pref = DashboardPreferenceService._locked(actor)
        pref.widget_order = order + [w for w in pref.widget_order if w not in order and w in WIDGETS]
        pref.save(update_fields=["widget_order", "updated_at"])
        return pref

    @staticmethod
    @transaction.atomic
    def toggle_widget_visibility(*, actor: Optional[Actor], widget: str) -> DashboardPreference:
        (widget,) = _widget_list("widget", [widget])
        pref = DashboardPreferenceService._locked(actor)
        hidden = list(pref.hidden_widgets)
        if widget in hidden:
            hidden.remove(widget)
        else:
            hidden.append(widget)
        pref.hidden_widgets = hidden
        pref.save(update_fields=["hidden_widgets", "updated_at"])
        return pref

    @staticmethod
    @transaction.atomic
    def set_default_period(*, actor: Optional[Actor], period: str) -> DashboardPreference:
        if period not in NAMED_SELECTORS:
            raise ValidationError({"default_period": f"Must be one of: {', '.join(NAMED_SELECTORS)}."})
        pref = DashboardPreferenceService._locked(actor)
        pref.default_period = period
        pref.save(update_fields=["default_period", "updated_at"])
        return pref

    @staticmethod
    @transaction.atomic
    def reset_layout(*, actor: Optional[Actor]) -> DashboardPreference:
        pref = DashboardPreferenceService._locked(actor)
        pref.widget_order = default_widget_order()
        pref.hidden_widgets = []
        pref.default_period = DEFAULT_SELECTOR
        pref.save(update_fields=["widget_order", "hidden_widgets", "default_period", "updated_at"])
        return pref
