# mill_core/iam/permissions.py
from __future__ import annotations

from typing import Optional

from rest_framework.permissions import SAFE_METHODS, BasePermission

from mill_core.common.exceptions import DENIED_MSG
from mill_core.iam.authorization import Actor, actor_for_user
from mill_core.iam.roles import Role, allowed_actions


def get_actor(request) -> Optional[Actor]:
    """
    Actor for the request user, memoized on the request.
    """
    if not hasattr(request, "_mill_actor"):
        request._mill_actor = actor_for_user(getattr(request, "user", None))
    return request._mill_actor


class ActionPermission(BasePermission):
    """
    DRF adapter over the authorization engine.

    Views declare ``required_actions = {"list": Action.VIEW_REPORTS, ...}``.
    This only answers "may this role ever do that?"; the per-resource
    same-tenant decision is made by the service via authorize() once the
    tenant is resolved.

    A view action missing from the map falls back to list/retrieve for safe
    methods and is denied otherwise.
    """
    message = DENIED_MSG

    def _required_action(self, request, view) -> Optional[str]:
        mapping = getattr(view, "required_actions", {}) or {}
        view_action = getattr(view, "action", None)

        if view_action in mapping:
            return mapping[view_action]

        if request.method in SAFE_METHODS:
            kwargs = getattr(view, "kwargs", {}) or {}
            read_action = "retrieve" if ("pk" in kwargs or "id" in kwargs) else "list"
            return mapping.get(read_action)
        return None

    def has_permission(self, request, view) -> bool:
        actor = get_actor(request)
        if actor is None:
            return False

        required = self._required_action(request, view)
        if required is None:
            return False

        if actor.role == Role.SUPER_ADMIN.value:
            return True
        return str(required) in allowed_actions(actor.role)


class IsSuperAdmin(BasePermission):
    message = DENIED_MSG

    def has_permission(self, request, view) -> bool:
        actor = get_actor(request)
        return actor is not None and actor.is_super_admin


class HasActor(BasePermission):
    """
    Any user allowed to act at all (active profile, tenant where the role needs one).
    """
    message = DENIED_MSG

    def has_permission(self, request, view) -> bool:
        return get_actor(request) is not None
