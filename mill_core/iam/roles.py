# mill_core/iam/roles.py
"""
Identity & role model.

The whole capability matrix is data: PERMISSION_TABLE[role][action] -> Rule.
A (role, action) pair that is not listed is denied. Roles do not inherit from
each other; if two roles share a capability it is listed twice.
"""
from __future__ import annotations

from django.db import models


class Role(models.TextChoices):
    SUPER_ADMIN = "super_admin", "Super admin"
    COMPANY_ADMIN = "company_admin", "Company admin"
    OPERATOR = "operator", "Operator"
    VIEWER = "viewer", "Viewer"


class Action(models.TextChoices):
    MANAGE_TENANTS = "manage_tenants", "Manage tenants"
    MANAGE_TENANT_SETTINGS = "manage_tenant_settings", "Manage tenant settings"
    MANAGE_USERS = "manage_users", "Manage users"
    VIEW_AUDIT_LOGS = "view_audit_logs", "View audit logs"
    MANAGE_INVENTORY = "manage_inventory", "Manage inventory"
    VIEW_REPORTS = "view_reports", "View reports"
    VIEW_FINANCIALS = "view_financials", "View financial figures"


class Rule(models.TextChoices):
    # granted without looking at the resource
    ALLOW = "allow", "Allow"
    # granted only when the resource belongs to the actor's tenant
    SAME_TENANT = "same_tenant", "Same tenant"


# super_admin is short-circuited in can(); the row is here so the matrix reads complete.
_TABLE = {
    Role.SUPER_ADMIN: {action: Rule.ALLOW for action in Action},
    Role.COMPANY_ADMIN: {
        Action.MANAGE_USERS: Rule.SAME_TENANT,
        Action.VIEW_AUDIT_LOGS: Rule.SAME_TENANT,
        # tenant confinement for these is done by mill_core.iam.scope
        Action.MANAGE_INVENTORY: Rule.ALLOW,
        Action.VIEW_REPORTS: Rule.ALLOW,
        Action.VIEW_FINANCIALS: Rule.ALLOW,
        Action.MANAGE_TENANT_SETTINGS: Rule.ALLOW,
    },
    Role.OPERATOR: {
        Action.MANAGE_INVENTORY: Rule.SAME_TENANT,
        Action.VIEW_REPORTS: Rule.SAME_TENANT,
        Action.VIEW_FINANCIALS: Rule.SAME_TENANT,
    },
    Role.VIEWER: {
        Action.VIEW_REPORTS: Rule.SAME_TENANT,
    },
}

# keyed by plain strings so lookups with raw DB values behave the same as with members
PERMISSION_TABLE: dict[str, dict[str, str]] = {
    role.value: {action.value: rule.value for action, rule in rules.items()}
    for role, rules in _TABLE.items()
}

TENANT_BOUND_ROLES = frozenset({Role.COMPANY_ADMIN.value, Role.OPERATOR.value, Role.VIEWER.value})


def allowed_actions(role: str) -> frozenset[str]:
    """
    Actions a role may perform on at least some resource (for menus/UI hints).
    """
    return frozenset(str(a) for a in PERMISSION_TABLE.get(role, {}))
