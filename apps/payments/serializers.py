from rest_framework import serializers

from .models import Payment, PaymentStatus


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            'id', 'order', 'amount', 'payment_method', 'payment_provider',
            'transaction_id', 'status', 'created_at',
        ]
        read_only_fields = fields


class RecordPaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    payment_method = serializers.CharField(max_length=50)
    payment_provider = serializers.CharField(max_length=50, required=False, allow_blank=True)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=PaymentStatus.choices, default=PaymentStatus.COMPLETED)
    provider_response = serializers.JSONField(required=False)


class RefundSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    reason = serializers.CharField(required=False, allow_blank=True)
    return_to_inventory = serializers.BooleanField(default=False)
    payment_method = serializers.CharField(max_length=50, required=False)
    payment_provider = serializers.CharField(max_length=50, required=False, allow_blank=True)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    provider_response = serializers.JSONField(required=False)
