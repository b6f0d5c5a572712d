from rest_framework import serializers

from apps.payments.serializers import PaymentSerializer

from .models import Order, OrderHistory, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            'id', 'product', 'name', 'sku', 'unit_price', 'quantity',
            'subtotal', 'tax_amount', 'discount_amount', 'total',
        ]
        read_only_fields = fields


class OrderHistorySerializer(serializers.ModelSerializer):
    created_by = serializers.EmailField(source='created_by.email', read_only=True, default=None)

    class Meta:
        model = OrderHistory
        fields = ['id', 'status', 'comment', 'created_by', 'created_at']


class OrderListSerializer(serializers.ModelSerializer):
    item_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'status', 'payment_status',
            'total_amount', 'item_count', 'created_at',
        ]


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'user', 'status', 'status_display', 'payment_status',
            'subtotal', 'tax_amount', 'shipping_amount', 'discount_amount', 'total_amount',
            'shipping_address', 'billing_address', 'payment_method', 'notes',
            'created_at', 'updated_at', 'completed_at', 'items',
        ]
        read_only_fields = fields


class OrderDetailSerializer(OrderSerializer):
    history = OrderHistorySerializer(many=True, read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ['history', 'payments']
        read_only_fields = fields


class OrderLineInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    tax_amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    discount_amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)


class OrderCreateSerializer(serializers.Serializer):
    items = OrderLineInputSerializer(many=True, allow_empty=False)
    shipping_address = serializers.DictField()
    billing_address = serializers.DictField(required=False)
    payment_method = serializers.CharField(max_length=50)
    notes = serializers.CharField(required=False, allow_blank=True)
    tax_amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)
    shipping_amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)
    discount_amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)


class OrderStatusSerializer(serializers.Serializer):
    # Plain CharField: the service owns the list of valid statuses.
    status = serializers.CharField(max_length=30)
    comment = serializers.CharField(required=False, allow_blank=True)


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True)


class HistoryEntrySerializer(serializers.Serializer):
    status = serializers.CharField(max_length=30)
    comment = serializers.CharField(required=False, allow_blank=True)


class OrderItemUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1, required=False)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide quantity and/or unit_price.")
        return attrs
