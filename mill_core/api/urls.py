# mill_core/api/urls.py
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from mill_core.audit.api.views import AuditLogViewSet
from mill_core.dashboard.api.views import (
    DashboardLayoutResetView,
    DashboardPreferenceView,
    DashboardWidgetToggleView,
)
from mill_core.iam.api.views import InvitationAcceptView, InvitationDetailView, MeView, UserViewSet
from mill_core.inventory.api.views import (
    ProductViewSet,
    StockInViewSet,
    StockOutViewSet,
    TransactionHistoryView,
)
from mill_core.reports.api.views import DashboardViewSet
from mill_core.tenants.api.views import TenantViewSet

router = DefaultRouter()

router.register(r"tenants", TenantViewSet, basename="tenants")
router.register(r"users", UserViewSet, basename="users")
router.register(r"audit/logs", AuditLogViewSet, basename="audit-logs")

# Inventory
router.register(r"products", ProductViewSet, basename="products")
router.register(r"stock-ins", StockInViewSet, basename="stock-ins")
router.register(r"stock-outs", StockOutViewSet, basename="stock-outs")

# Dashboard widgets (list-level actions only)
router.register(r"dashboard", DashboardViewSet, basename="dashboard")

urlpatterns = [
    # Auth + /me
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("auth/invitations/<str:token>/", InvitationDetailView.as_view(), name="invitation-detail"),
    path("auth/invitations/<str:token>/accept/", InvitationAcceptView.as_view(), name="invitation-accept"),
    path("me/", MeView.as_view(), name="me"),

    path("transactions/", TransactionHistoryView.as_view(), name="transactions"),

    path("dashboard/preferences/", DashboardPreferenceView.as_view(), name="dashboard-preferences"),
    path("dashboard/preferences/toggle/", DashboardWidgetToggleView.as_view(), name="dashboard-preferences-toggle"),
    path("dashboard/preferences/reset/", DashboardLayoutResetView.as_view(), name="dashboard-preferences-reset"),

    path("", include(router.urls)),
]
