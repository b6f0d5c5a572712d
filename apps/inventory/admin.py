from django.contrib import admin
from .models import InventoryStock, StockMovementLog


@admin.register(InventoryStock)
class InventoryStockAdmin(admin.ModelAdmin):
    list_display = ('product', 'quantity', 'reserved_quantity', 'low_stock_threshold', 'updated_at')
    search_fields = ('product__sku', 'product__name')
    readonly_fields = ('quantity', 'reserved_quantity', 'created_at', 'updated_at')


@admin.register(StockMovementLog)
class StockMovementLogAdmin(admin.ModelAdmin):
    list_display = ('inventory', 'movement_type', 'quantity_change', 'balance_after', 'reference', 'created_at')
    list_filter = ('movement_type',)
    search_fields = ('reference', 'inventory__product__sku')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
