from __future__ import annotations

from rest_framework import serializers

from mill_core.inventory.models import Product, StockIn, StockOut

MONEY_FIELDS = ("price_per_quintal", "total_price")


class FinancialFieldsMixin:
    """
    Drops money fields unless the serializer context says the caller may see them.
    """

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if not self.context.get("show_financials", False):
            for f in MONEY_FIELDS:
                data.pop(f, None)
        return data


class ProductSerializer(FinancialFieldsMixin, serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "tenant_id",
            "name",
            "sku",
            "category",
            "unit",
            "price_per_quintal",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ProductCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    sku = serializers.CharField(max_length=64)
    category = serializers.CharField(max_length=64, required=False, allow_blank=True)
    unit = serializers.CharField(max_length=32, required=False, allow_blank=True)
    price_per_quintal = serializers.DecimalField(max_digits=12, decimal_places=2)


class ProductUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False)
    sku = serializers.CharField(max_length=64, required=False)
    category = serializers.CharField(max_length=64, required=False)
    unit = serializers.CharField(max_length=32, required=False)
    price_per_quintal = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)


class StockInSerializer(FinancialFieldsMixin, serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = StockIn
        fields = [
            "id",
            "tenant_id",
            "product_id",
            "product_name",
            "date",
            "farmer_name",
            "farmer_contact",
            "vehicle_number",
            "num_of_bags",
            "net_weight_per_bag_kg",
            "price_per_quintal",
            "total_quintals",
            "total_price",
            "created_at",
        ]
        read_only_fields = fields


class StockOutSerializer(FinancialFieldsMixin, serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = StockOut
        fields = [
            "id",
            "tenant_id",
            "product_id",
            "product_name",
            "date",
            "customer_name",
            "customer_contact",
            "vehicle_number",
            "num_of_bags",
            "net_weight_per_bag_kg",
            "price_per_quintal",
            "total_quintals",
            "total_price",
            "created_at",
        ]
        read_only_fields = fields


class _MovementCreateSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    date = serializers.DateField()
    vehicle_number = serializers.CharField(max_length=50)
    num_of_bags = serializers.IntegerField(min_value=1)
    net_weight_per_bag_kg = serializers.DecimalField(max_digits=10, decimal_places=3)
    # falls back to the product's current price
    price_per_quintal = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)


class StockInCreateSerializer(_MovementCreateSerializer):
    farmer_name = serializers.CharField(max_length=255)
    farmer_contact = serializers.CharField(max_length=20)


class StockOutCreateSerializer(_MovementCreateSerializer):
    customer_name = serializers.CharField(max_length=255)
    customer_contact = serializers.CharField(max_length=20)


class TransactionRowSerializer(FinancialFieldsMixin, serializers.Serializer):
    type = serializers.CharField()
    id = serializers.UUIDField()
    date = serializers.DateField()
    product_id = serializers.UUIDField()
    product_name = serializers.CharField()
    party_name = serializers.CharField()
    party_contact = serializers.CharField()
    vehicle_number = serializers.CharField()
    num_of_bags = serializers.IntegerField()
    total_quintals = serializers.DecimalField(max_digits=18, decimal_places=5)
    price_per_quintal = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_price = serializers.DecimalField(max_digits=24, decimal_places=7)
    created_at = serializers.DateTimeField()
