from django.contrib import admin

from mill_core.audit.models import AuditLogEntry


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(admin.ModelAdmin):
    list_display = (
        "action",
        "resource_type",
        "resource_id",
        "tenant",
        "user",
        "ip_address",
        "occurred_at",
    )
    list_filter = ("tenant", "action", "resource_type")
    search_fields = ("action", "resource_type", "resource_id")
    readonly_fields = [f.name for f in AuditLogEntry._meta.fields]
    ordering = ("-occurred_at",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
