"""
Order Serializers

Shape checks only. Business rules (farmer verification, stock, minimums,
payment confirmation) live in the order services so their messages reach the
buyer unchanged.
"""

from rest_framework import serializers

from payments.models import PaymentMethod, PaymentStatus
from .models import Order, OrderItem


# =============================================================================
# READ SERIALIZERS
# =============================================================================

class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            'id', 'product', 'product_name', 'unit_type',
            'quantity', 'unit_price', 'total_price', 'created_at'
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Order with its item snapshots."""
    items = OrderItemSerializer(many=True, read_only=True)
    buyer_name = serializers.CharField(source='buyer.get_full_name', read_only=True)
    farmer_name = serializers.CharField(source='farmer.get_full_name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number',
            'buyer', 'buyer_name', 'farmer', 'farmer_name',
            'total_amount', 'currency',
            'status', 'status_display',
            'payment_status', 'payment_method', 'transaction_id',
            'delivery_address', 'delivery_date', 'special_instructions',
            'items',
            'created_at', 'updated_at', 'confirmed_at', 'delivered_at', 'cancelled_at'
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    item_count = serializers.IntegerField(source='items.count', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'buyer', 'farmer',
            'total_amount', 'currency', 'status', 'payment_status',
            'item_count', 'created_at'
        ]
        read_only_fields = fields


# =============================================================================
# WRITE SERIALIZERS
# =============================================================================

class ValidateOrderSerializer(serializers.Serializer):
    """
    Basket as sent by the client. farmer_id and item contents are checked by
    OrderValidator, which owns the rejection messages.
    """
    farmer_id = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    items = serializers.ListField(child=serializers.DictField(), required=False)
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True)


class DeliverySerializer(ValidateOrderSerializer):
    delivery_address = serializers.CharField()
    delivery_date = serializers.DateField(required=False, allow_null=True)
    special_instructions = serializers.CharField(required=False, allow_blank=True)


class CreateOrderAfterPaymentSerializer(DeliverySerializer):
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    payment_status = serializers.CharField()
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True)


class CreateCODOrderSerializer(DeliverySerializer):
    """Cash on delivery; no payment confirmation needed up front."""


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.CharField()


class PaymentStatusUpdateSerializer(serializers.Serializer):
    payment_status = serializers.CharField(required=False, allow_blank=True)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def is_valid_status(self):
        return self.validated_data.get('payment_status') in PaymentStatus.values
