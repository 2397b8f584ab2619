from rest_framework import serializers

from mill_core.audit.models import AuditLogEntry


class AuditLogEntrySerializer(serializers.ModelSerializer):
    timestamp = serializers.DateTimeField(source="occurred_at", read_only=True)
    user_id = serializers.IntegerField(read_only=True)
    user_email = serializers.SerializerMethodField()

    class Meta:
        model = AuditLogEntry
        fields = [
            "id",
            "tenant_id",
            "user_id",
            "user_email",
            "action",
            "resource_type",
            "resource_id",
            "changes",
            "ip_address",
            "user_agent",
            "timestamp",
        ]
        read_only_fields = fields

    def get_user_email(self, obj) -> str | None:
        return obj.user.email if obj.user_id else None
