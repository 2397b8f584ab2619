from __future__ import annotations

from rest_framework import serializers

from mill_core.iam.models import UserInvitation, UserProfile
from mill_core.iam.roles import Role
from mill_core.iam.services import INVITABLE_ROLES


class UserProfileSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    email = serializers.EmailField(source="user.email", read_only=True)

    class Meta:
        model = UserProfile
        fields = [
            "id",
            "user_id",
            "email",
            "name",
            "tenant_id",
            "role",
            "status",
            "last_login_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class UserCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    password = serializers.CharField(write_only=True, required=False, allow_null=True, default=None, min_length=8)
    role = serializers.ChoiceField(choices=Role.choices, default=Role.VIEWER)
    tenant_id = serializers.UUIDField(required=False, allow_null=True, default=None)


class UserRoleUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=Role.choices)


class MeSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    email = serializers.EmailField(allow_blank=True)
    role = serializers.CharField()
    tenant_id = serializers.UUIDField(allow_null=True)
    allowed_actions = serializers.ListField(child=serializers.CharField())


class UserInvitationSerializer(serializers.ModelSerializer):
    invited_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = UserInvitation
        fields = [
            "id",
            "tenant_id",
            "email",
            "role",
            "status",
            "token",
            "invited_by_id",
            "expires_at",
            "accepted_at",
            "created_at",
        ]
        read_only_fields = fields


class InvitationCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    role = serializers.ChoiceField(choices=sorted(INVITABLE_ROLES), default=Role.VIEWER.value)
    tenant_id = serializers.UUIDField(required=False, allow_null=True, default=None)


class InvitationPublicSerializer(serializers.ModelSerializer):
    """What an invitee sees before accepting: no token, no inviter."""

    tenant_name = serializers.CharField(source="tenant.name", read_only=True)

    class Meta:
        model = UserInvitation
        fields = ["email", "role", "tenant_name", "status", "expires_at"]
        read_only_fields = fields


class InvitationAcceptSerializer(serializers.Serializer):
    password = serializers.CharField(write_only=True, min_length=8)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
