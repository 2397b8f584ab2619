from __future__ import annotations

import django_filters
from django.db.models import Q

from mill_core.inventory.models import Product, StockIn, StockOut


class ProductFilter(django_filters.FilterSet):
    q = django_filters.CharFilter(method="filter_q")
    category = django_filters.CharFilter(field_name="category")

    class Meta:
        model = Product
        fields = ["category"]

    def filter_q(self, queryset, name, value):
        return queryset.filter(Q(name__icontains=value) | Q(sku__icontains=value))


class _MovementFilter(django_filters.FilterSet):
    date_from = django_filters.DateFilter(field_name="date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="date", lookup_expr="lte")
    product_id = django_filters.UUIDFilter(field_name="product_id")


class StockInFilter(_MovementFilter):
    farmer_name = django_filters.CharFilter(field_name="farmer_name", lookup_expr="icontains")

    class Meta:
        model = StockIn
        fields = ["date_from", "date_to", "product_id", "farmer_name"]


class StockOutFilter(_MovementFilter):
    customer_name = django_filters.CharFilter(field_name="customer_name", lookup_expr="icontains")

    class Meta:
        model = StockOut
        fields = ["date_from", "date_to", "product_id", "customer_name"]
