# apps/analytics/serializers.py
from rest_framework import serializers

from apps.utils.serializers import DateRangeSerializer


class AnalyticsQuerySerializer(DateRangeSerializer):
    seller = serializers.UUIDField(required=False)
    category = serializers.UUIDField(required=False)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100, default=10)


class SalesOverviewSerializer(serializers.Serializer):
    total_orders = serializers.IntegerField()
    unique_customers = serializers.IntegerField()
    revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    average_order_value = serializers.DecimalField(max_digits=14, decimal_places=2)
    completed_orders = serializers.IntegerField()
    completed_revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    previous_orders = serializers.IntegerField()
    previous_revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    order_growth = serializers.FloatField(allow_null=True)
    revenue_growth = serializers.FloatField(allow_null=True)


class DailySalesSerializer(serializers.Serializer):
    date = serializers.DateField()
    orders = serializers.IntegerField()
    revenue = serializers.DecimalField(max_digits=14, decimal_places=2)


class TopProductSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    product_name = serializers.CharField()
    sku_code = serializers.CharField()
    units_sold = serializers.IntegerField()
    revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    order_count = serializers.IntegerField()


class CategoryRevenueSerializer(serializers.Serializer):
    category_id = serializers.UUIDField()
    category_name = serializers.CharField()
    revenue = serializers.DecimalField(max_digits=14, decimal_places=2)
    orders = serializers.IntegerField()
    units_sold = serializers.IntegerField()


class StatusBreakdownSerializer(serializers.Serializer):
    status = serializers.CharField()
    count = serializers.IntegerField()
    revenue = serializers.DecimalField(max_digits=14, decimal_places=2)


class TopCustomerSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    email = serializers.EmailField()
    order_count = serializers.IntegerField()
    total_spent = serializers.DecimalField(max_digits=14, decimal_places=2)


class LowStockProductSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    name = serializers.CharField()
    sku_code = serializers.CharField()
    quantity = serializers.IntegerField()
    low_stock_threshold = serializers.IntegerField()


class InventoryStatusSerializer(serializers.Serializer):
    low_stock_count = serializers.IntegerField()
    out_of_stock_count = serializers.IntegerField()
    average_stock_level = serializers.FloatField(allow_null=True)
    low_stock_products = LowStockProductSerializer(many=True)
