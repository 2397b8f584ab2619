from django.contrib import admin

from mill_core.inventory.models import Product, StockIn, StockOut


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "tenant", "category", "unit", "price_per_quintal", "updated_at")
    list_filter = ("tenant", "category")
    search_fields = ("name", "sku")
    ordering = ("tenant", "name")
    readonly_fields = ("id", "created_at", "updated_at")


class _MovementAdmin(admin.ModelAdmin):
    list_filter = ("tenant", "date")
    date_hierarchy = "date"
    ordering = ("-created_at",)

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockIn)
class StockInAdmin(_MovementAdmin):
    list_display = ("date", "tenant", "product", "farmer_name", "num_of_bags", "total_quintals", "total_price")
    search_fields = ("farmer_name", "vehicle_number", "product__name")


@admin.register(StockOut)
class StockOutAdmin(_MovementAdmin):
    list_display = ("date", "tenant", "product", "customer_name", "num_of_bags", "total_quintals", "total_price")
    search_fields = ("customer_name", "vehicle_number", "product__name")
