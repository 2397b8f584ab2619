from __future__ import annotations

from rest_framework import serializers

from mill_core.dashboard.models import WIDGETS, DashboardPreference
from mill_core.reports.periods import NAMED_SELECTORS


class DashboardPreferenceSerializer(serializers.ModelSerializer):
    class Meta:
        model = DashboardPreference
        fields = ["widget_order", "hidden_widgets", "default_period", "updated_at"]
        read_only_fields = fields


class DashboardPreferenceUpdateSerializer(serializers.Serializer):
    widget_order = serializers.ListField(child=serializers.ChoiceField(choices=WIDGETS), required=False)
    default_period = serializers.ChoiceField(choices=NAMED_SELECTORS, required=False)


class WidgetToggleSerializer(serializers.Serializer):
    widget = serializers.ChoiceField(choices=WIDGETS)
