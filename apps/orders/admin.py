import json

from django.contrib import admin
from django.utils.safestring import mark_safe

from .models import Order, OrderHistory, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('product', 'name', 'sku', 'unit_price', 'quantity', 'total')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderHistoryInline(admin.TabularInline):
    model = OrderHistory
    extra = 0
    readonly_fields = ('created_at', 'status', 'comment', 'created_by')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Read-only: every change goes through OrderService.
    """
    list_display = ('order_number', 'user', 'status', 'payment_status', 'total_amount', 'created_at')
    list_filter = ('status', 'payment_status', 'created_at')
    search_fields = ('order_number', 'id', 'user__email')
    inlines = [OrderItemInline, OrderHistoryInline]

    readonly_fields = (
        'id', 'order_number', 'user', 'status', 'payment_status', 'payment_method',
        'subtotal', 'tax_amount', 'shipping_amount', 'discount_amount', 'total_amount',
        'formatted_shipping_address', 'notes', 'created_at', 'updated_at', 'completed_at',
    )
    exclude = ('shipping_address', 'billing_address')

    def has_add_permission(self, request):
        return False

    def formatted_shipping_address(self, obj):
        if not obj.shipping_address:
            return "-"
        content = json.dumps(obj.shipping_address, indent=2)
        return mark_safe(f"<pre>{content}</pre>")

    formatted_shipping_address.short_description = "Shipping Address Snapshot"
