from __future__ import annotations

from rest_framework import serializers

from mill_core.tenants.models import Tenant


class TenantSerializer(serializers.ModelSerializer):
    user_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Tenant
        fields = [
            "id",
            "name",
            "slug",
            "is_active",
            "contact_email",
            "contact_phone",
            "settings",
            "user_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TenantCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    slug = serializers.CharField(max_length=255)
    contact_email = serializers.EmailField(max_length=160, required=False, allow_blank=True, default="")
    contact_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    settings = serializers.JSONField(required=False, default=dict)

    # optional first company admin, created in the same transaction
    admin_email = serializers.EmailField(required=False)
    admin_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    admin_password = serializers.CharField(write_only=True, required=False, allow_null=True, default=None, min_length=8)


class TenantSettingsUpdateSerializer(serializers.Serializer):
    settings = serializers.JSONField()
