from __future__ import annotations

from rest_framework import serializers

# Money fields are optional on output: the service omits them for callers
# without view_financials and a missing key is then skipped, not rendered as null.

QTY = {"max_digits": 18, "decimal_places": 5}
AMOUNT = {"max_digits": 24, "decimal_places": 7}
PRICE = {"max_digits": 12, "decimal_places": 2}
# growth from a near-zero base has no useful upper bound
PCT = {"max_digits": None, "decimal_places": 2}


class DateRangeSerializer(serializers.Serializer):
    start = serializers.DateField()
    end = serializers.DateField(help_text="Exclusive.")


class PeriodSerializer(serializers.Serializer):
    selector = serializers.CharField()
    current = DateRangeSerializer()
    previous = DateRangeSerializer()


class InventoryMetricsSerializer(serializers.Serializer):
    total_stock = serializers.DecimalField(**QTY)
    product_count = serializers.IntegerField()
    total_value = serializers.DecimalField(**AMOUNT, required=False)


class StockLevelSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    name = serializers.CharField()
    sku = serializers.CharField()
    unit = serializers.CharField()
    price_per_quintal = serializers.DecimalField(**PRICE, required=False)
    total_in = serializers.DecimalField(**QTY)
    total_out = serializers.DecimalField(**QTY)
    available = serializers.DecimalField(**QTY)


class StockAlertSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    product_name = serializers.CharField()
    current_stock = serializers.DecimalField(**QTY)
    threshold = serializers.DecimalField(**QTY)
    severity = serializers.CharField()


class FinancialMetricsSerializer(serializers.Serializer):
    total_purchases = serializers.DecimalField(**AMOUNT)
    total_sales = serializers.DecimalField(**AMOUNT)
    gross_margin = serializers.DecimalField(**AMOUNT)
    stock_in_count = serializers.IntegerField()
    stock_out_count = serializers.IntegerField()


class MovementTrendSerializer(serializers.Serializer):
    dates = serializers.ListField(child=serializers.DateField())
    stock_in_values = serializers.ListField(child=serializers.DecimalField(**QTY))
    stock_out_values = serializers.ListField(child=serializers.DecimalField(**QTY))


class TopEntitySerializer(serializers.Serializer):
    # product uuid, or the party name for farmer/customer rankings
    id = serializers.CharField()
    name = serializers.CharField(allow_blank=True)
    quantity = serializers.DecimalField(**QTY)
    amount = serializers.DecimalField(**AMOUNT, required=False)
    percentage = serializers.DecimalField(**PCT)
    transaction_count = serializers.IntegerField(required=False)
    average_transaction_size = serializers.DecimalField(**QTY, required=False)


class PerformanceComparisonSerializer(serializers.Serializer):
    current_stock_in = serializers.DecimalField(**QTY)
    current_stock_out = serializers.DecimalField(**QTY)
    previous_stock_in = serializers.DecimalField(**QTY)
    previous_stock_out = serializers.DecimalField(**QTY)
    stock_in_change = serializers.DecimalField(**PCT)
    stock_out_change = serializers.DecimalField(**PCT)


class RecentTransactionSerializer(serializers.Serializer):
    type = serializers.CharField()
    id = serializers.UUIDField()
    date = serializers.DateField()
    product_id = serializers.UUIDField()
    product_name = serializers.CharField()
    party_name = serializers.CharField()
    party_contact = serializers.CharField()
    vehicle_number = serializers.CharField()
    num_of_bags = serializers.IntegerField()
    total_quintals = serializers.DecimalField(**QTY)
    price_per_quintal = serializers.DecimalField(**PRICE, required=False)
    total_price = serializers.DecimalField(**AMOUNT, required=False)
    created_at = serializers.DateTimeField()


WIDGET_SERIALIZERS = {
    "inventory": (InventoryMetricsSerializer, False),
    "alerts": (StockAlertSerializer, True),
    "financial": (FinancialMetricsSerializer, False),
    "comparison": (PerformanceComparisonSerializer, False),
    "trend": (MovementTrendSerializer, False),
    "top_products_in": (TopEntitySerializer, True),
    "top_products_out": (TopEntitySerializer, True),
    "top_farmers": (TopEntitySerializer, True),
    "top_customers": (TopEntitySerializer, True),
    "recent": (RecentTransactionSerializer, True),
}


def render_snapshot(snapshot: dict) -> dict:
    """
    Serialize each widget of a snapshot; failed widgets keep their {"error": code}.
    """
    out = {"period": PeriodSerializer(snapshot["period"]).data}
    for name, (ser, many) in WIDGET_SERIALIZERS.items():
        if name not in snapshot:
            continue
        value = snapshot[name]
        if isinstance(value, dict) and set(value) == {"error"}:
            out[name] = value
        else:
            out[name] = ser(value, many=many).data
    return out
