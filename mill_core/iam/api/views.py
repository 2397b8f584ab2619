from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from mill_core.audit.services import request_meta
from mill_core.common.api.pagination import paginate
from mill_core.common.exceptions import NotFound, Unauthorized
from mill_core.iam.api.serializers import (
    InvitationAcceptSerializer,
    InvitationCreateSerializer,
    InvitationPublicSerializer,
    MeSerializer,
    UserCreateSerializer,
    UserInvitationSerializer,
    UserProfileSerializer,
    UserRoleUpdateSerializer,
)
from mill_core.iam.models import UserProfile
from mill_core.iam.permissions import ActionPermission, get_actor
from mill_core.iam.roles import Action, allowed_actions
from mill_core.iam.scope import scope_for_request
from mill_core.iam.selectors import get_invitation_by_token, get_user_profile, list_invitations, list_users
from mill_core.iam.services import UserService

TENANT_PARAM = OpenApiParameter(
    name="tenant_id",
    type=OpenApiTypes.UUID,
    location=OpenApiParameter.QUERY,
    required=False,
    description="Required for super admins; defaults to the caller's tenant.",
)


def _profile_id(pk) -> UUID:
    try:
        return UUID(str(pk))
    except ValueError:
        raise NotFound("User not found.")


@extend_schema_view(
    list=extend_schema(
        tags=["Users"],
        parameters=[
            TENANT_PARAM,
            OpenApiParameter(name="role", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: UserProfileSerializer(many=True)},
    ),
    retrieve=extend_schema(tags=["Users"], parameters=[TENANT_PARAM], responses={200: UserProfileSerializer}),
    create=extend_schema(tags=["Users"], request=UserCreateSerializer, responses={201: UserProfileSerializer}),
    set_role=extend_schema(tags=["Users"], request=UserRoleUpdateSerializer, responses={200: UserProfileSerializer}),
    activate=extend_schema(tags=["Users"], request=None, responses={200: UserProfileSerializer}),
    deactivate=extend_schema(tags=["Users"], request=None, responses={200: UserProfileSerializer}),
    invite=extend_schema(tags=["Users"], request=InvitationCreateSerializer, responses={201: UserInvitationSerializer}),
    invitations=extend_schema(
        tags=["Users"],
        parameters=[
            TENANT_PARAM,
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: UserInvitationSerializer(many=True)},
    ),
)
class UserViewSet(viewsets.ViewSet):
    permission_classes = [ActionPermission]
    required_actions = {
        "list": Action.MANAGE_USERS,
        "retrieve": Action.MANAGE_USERS,
        "create": Action.MANAGE_USERS,
        "set_role": Action.MANAGE_USERS,
        "activate": Action.MANAGE_USERS,
        "deactivate": Action.MANAGE_USERS,
        "invite": Action.MANAGE_USERS,
        "invitations": Action.MANAGE_USERS,
    }

    serializer_class = UserProfileSerializer
    queryset = UserProfile.objects.none()

    def list(self, request):
        qs = list_users(
            scope=scope_for_request(request),
            role=request.query_params.get("role") or None,
            status=request.query_params.get("status") or None,
            search=request.query_params.get("q") or None,
        )
        return paginate(request, qs, UserProfileSerializer)

    def retrieve(self, request, pk=None):
        p = get_user_profile(scope=scope_for_request(request), profile_id=_profile_id(pk))
        return Response(UserProfileSerializer(p).data, status=status.HTTP_200_OK)

    def create(self, request):
        ser = UserCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        actor = get_actor(request)
        data = dict(ser.validated_data)
        # tenant-bound callers create inside their own tenant unless told otherwise
        if data.get("tenant_id") is None and actor is not None and not actor.is_super_admin:
            data["tenant_id"] = UUID(actor.tenant_id)

        p = UserService.create_user(actor=actor, **data, **request_meta(request))
        return Response(UserProfileSerializer(p).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="role")
    def set_role(self, request, pk=None):
        ser = UserRoleUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        p = UserService.change_role(
            actor=get_actor(request),
            profile_id=_profile_id(pk),
            role=ser.validated_data["role"],
            **request_meta(request),
        )
        return Response(UserProfileSerializer(p).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="activate")
    def activate(self, request, pk=None):
        p = UserService.activate(actor=get_actor(request), profile_id=_profile_id(pk), **request_meta(request))
        return Response(UserProfileSerializer(p).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="deactivate")
    def deactivate(self, request, pk=None):
        p = UserService.deactivate(actor=get_actor(request), profile_id=_profile_id(pk), **request_meta(request))
        return Response(UserProfileSerializer(p).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="invite")
    def invite(self, request):
        ser = InvitationCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        actor = get_actor(request)
        data = dict(ser.validated_data)
        if data.get("tenant_id") is None and actor is not None and not actor.is_super_admin:
            data["tenant_id"] = UUID(actor.tenant_id)

        inv = UserService.invite(actor=actor, **data, **request_meta(request))
        return Response(UserInvitationSerializer(inv).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"], url_path="invitations")
    def invitations(self, request):
        qs = list_invitations(
            scope=scope_for_request(request),
            status=request.query_params.get("status") or None,
        )
        return paginate(request, qs, UserInvitationSerializer)


class MeView(APIView):
    """
    Who am I, and what may I do. Used by clients to build menus.
    """

    @extend_schema(tags=["Auth"], responses={200: MeSerializer})
    def get(self, request):
        actor = get_actor(request)
        if actor is None:
            raise Unauthorized()

        actions = sorted(str(a) for a in Action) if actor.is_super_admin else sorted(allowed_actions(actor.role))
        return Response(
            {
                "user_id": request.user.id,
                "email": request.user.email or "",
                "role": actor.role,
                "tenant_id": actor.tenant_id,
                "allowed_actions": actions,
            },
            status=status.HTTP_200_OK,
        )


class InvitationDetailView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(tags=["Auth"], responses={200: InvitationPublicSerializer})
    def get(self, request, token: str):
        inv = get_invitation_by_token(token=token)
        return Response(InvitationPublicSerializer(inv).data, status=status.HTTP_200_OK)


class InvitationAcceptView(APIView):
    """
    Anonymous endpoint: the invitation token is the credential.
    """

    permission_classes = [AllowAny]

    @extend_schema(tags=["Auth"], request=InvitationAcceptSerializer, responses={201: UserProfileSerializer})
    def post(self, request, token: str):
        ser = InvitationAcceptSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        p = UserService.accept_invitation(token=token, **ser.validated_data, **request_meta(request))
        return Response(UserProfileSerializer(p).data, status=status.HTTP_201_CREATED)
