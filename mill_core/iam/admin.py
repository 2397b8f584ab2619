from __future__ import annotations

from django.contrib import admin

from mill_core.iam.models import UserInvitation, UserProfile


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "name", "tenant", "role", "status", "last_login_at", "created_at")
    list_filter = ("tenant", "role", "status")
    search_fields = ("user__username", "user__email", "name")
    autocomplete_fields = ("user", "tenant")
    ordering = ("-created_at",)

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(UserInvitation)
class UserInvitationAdmin(admin.ModelAdmin):
    list_display = ("id", "email", "tenant", "role", "status", "expires_at", "accepted_at", "created_at")
    list_filter = ("tenant", "role", "status")
    search_fields = ("email",)
    readonly_fields = ("token", "accepted_at")
    ordering = ("-created_at",)
