"""
Payment Serializers
"""

from rest_framework import serializers

from .models import Payment, PaymentMethod, PaymentStatus, PaymentTransaction, GATEWAY_METHODS


class PaymentTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentTransaction
        fields = [
            'id', 'transaction_type', 'status', 'amount', 'currency',
            'gateway_transaction_id', 'error_code', 'error_message',
            'idempotency_key', 'reason', 'created_at'
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """Read serializer; gateway payloads are never exposed."""
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)
    refundable_amount = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'order', 'order_number', 'buyer', 'farmer',
            'payment_method', 'payment_status', 'amount', 'currency',
            'gateway', 'gateway_order_id', 'gateway_payment_id',
            'refund_amount', 'refundable_amount', 'refund_reason', 'refund_date',
            'payment_date', 'confirmed_at', 'failure_reason',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class PaymentDetailSerializer(PaymentSerializer):
    transactions = PaymentTransactionSerializer(many=True, read_only=True)

    class Meta(PaymentSerializer.Meta):
        fields = PaymentSerializer.Meta.fields + ['quote', 'transactions']
        read_only_fields = fields


class CreatePaymentSerializer(serializers.Serializer):
    """Checkout request: the basket is priced by the order validator."""
    farmer_id = serializers.CharField(required=False, allow_blank=True)
    items = serializers.ListField(child=serializers.DictField(), required=False)
    payment_method = serializers.ChoiceField(
        choices=[(method.value, method.label) for method in GATEWAY_METHODS]
    )
    currency = serializers.CharField(max_length=3, required=False)
    callback_url = serializers.URLField(required=False)


class VerifyPaymentSerializer(serializers.Serializer):
    gateway_order_id = serializers.CharField(max_length=100)
    gateway_payment_id = serializers.CharField(max_length=100)
    signature = serializers.CharField(max_length=256)


class CODConfirmSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()


class RefundSerializer(serializers.Serializer):
    """Exactly one of order_id or payment_id identifies the payment."""
    order_id = serializers.UUIDField(required=False)
    payment_id = serializers.UUIDField(required=False)
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    reason = serializers.CharField(max_length=500)
    idempotency_key = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def validate(self, attrs):
        if bool(attrs.get('order_id')) == bool(attrs.get('payment_id')):
            raise serializers.ValidationError("Provide exactly one of order_id or payment_id")
        return attrs


class PaymentMethodSerializer(serializers.Serializer):
    value = serializers.CharField()
    label = serializers.CharField()
    requires_gateway = serializers.BooleanField()


def payment_method_choices():
    return [
        {
            'value': method.value,
            'label': method.label,
            'requires_gateway': method in GATEWAY_METHODS,
        }
        for method in PaymentMethod
    ]


def payment_status_values():
    return [status.value for status in PaymentStatus]
