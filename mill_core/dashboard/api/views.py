from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from mill_core.dashboard.api.serializers import (
    DashboardPreferenceSerializer,
    DashboardPreferenceUpdateSerializer,
    WidgetToggleSerializer,
)
from mill_core.dashboard.services import DashboardPreferenceService
from mill_core.iam.permissions import HasActor, get_actor


class DashboardPreferenceView(APIView):
    permission_classes = [HasActor]

    @extend_schema(tags=["Dashboard"], responses={200: DashboardPreferenceSerializer})
    def get(self, request):
        pref = DashboardPreferenceService.get_or_create(actor=get_actor(request))
        return Response(DashboardPreferenceSerializer(pref).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Dashboard"], request=DashboardPreferenceUpdateSerializer, responses={200: DashboardPreferenceSerializer})
    def patch(self, request):
        ser = DashboardPreferenceUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        actor = get_actor(request)
        pref = DashboardPreferenceService.get_or_create(actor=actor)
        if "widget_order" in ser.validated_data:
            pref = DashboardPreferenceService.update_widget_order(actor=actor, widget_order=ser.validated_data["widget_order"])
        if "default_period" in ser.validated_data:
            pref = DashboardPreferenceService.set_default_period(actor=actor, period=ser.validated_data["default_period"])
        return Response(DashboardPreferenceSerializer(pref).data, status=status.HTTP_200_OK)


class DashboardWidgetToggleView(APIView):
    permission_classes = [HasActor]

    @extend_schema(tags=["Dashboard"], request=WidgetToggleSerializer, responses={200: DashboardPreferenceSerializer})
    def post(self, request):
        ser = WidgetToggleSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        pref = DashboardPreferenceService.toggle_widget_visibility(actor=get_actor(request), widget=ser.validated_data["widget"])
        return Response(DashboardPreferenceSerializer(pref).data, status=status.HTTP_200_OK)


class DashboardLayoutResetView(APIView):
    permission_classes = [HasActor]

    @extend_schema(tags=["Dashboard"], request=None, responses={200: DashboardPreferenceSerializer})
    def post(self, request):
        pref = DashboardPreferenceService.reset_layout(actor=get_actor(request))
        return Response(DashboardPreferenceSerializer(pref).data, status=status.HTTP_200_OK)
