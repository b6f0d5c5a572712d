from rest_framework import serializers
from .models import InventoryStock, StockMovementLog


class InventoryStockSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    sku = serializers.CharField(source='product.sku', read_only=True)

    class Meta:
        model = InventoryStock
        fields = [
            'id', 'product_id', 'product_name', 'sku',
            'quantity', 'reserved_quantity', 'low_stock_threshold',
            'is_low_stock', 'warehouse_location', 'last_restock_date',
        ]


class StockMovementLogSerializer(serializers.ModelSerializer):
    performed_by = serializers.EmailField(source='created_by.email', read_only=True, default=None)

    class Meta:
        model = StockMovementLog
        fields = [
            'id', 'created_at', 'movement_type',
            'quantity_change', 'balance_after',
            'reference', 'performed_by'
        ]


class StockAdjustmentSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    delta_quantity = serializers.IntegerField()
    reason = serializers.CharField(max_length=255)

    def validate_delta_quantity(self, value):
        if value == 0:
            raise serializers.ValidationError("Change cannot be zero.")
        return value
