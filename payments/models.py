"""
Payment Models

Payment is the source of truth for the money side of an order. The order's
payment_status column is a mirror that PaymentService keeps in sync inside the
same transaction that changes the Payment.

A Payment is created before the order exists (checkout quote), becomes `paid`
only after a signature-verified gateway confirmation, and is linked to its
Order by the commit engine.
"""

from django.conf import settings
from django.db import models
from decimal import Decimal
import uuid


class PaymentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'
    FAILED = 'failed', 'Failed'
    REFUNDED = 'refunded', 'Refunded'


class PaymentMethod(models.TextChoices):
    CARD = 'card', 'Card'
    MOBILE_MONEY = 'mobile_money', 'Mobile Money'
    BANK_TRANSFER = 'bank_transfer', 'Bank Transfer'
    COD = 'cod', 'Cash on Delivery'


GATEWAY_METHODS = (
    PaymentMethod.CARD,
    PaymentMethod.MOBILE_MONEY,
    PaymentMethod.BANK_TRANSFER,
)


class Payment(models.Model):
    """Lifecycle of one gateway (or cash) payment for a single-farmer order."""

    GATEWAY_CHOICES = [
        ('paystack', 'Paystack'),
        ('cash', 'Cash'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='payments',
        help_text='Set by the commit engine once the order exists'
    )
    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='payments'
    )
    farmer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='received_payments'
    )

    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default='INR')

    # Checkout snapshot: [{product_id, quantity, unit_price, total_price}]
    quote = models.JSONField(default=list, blank=True)

    # Gateway correlation
    gateway = models.CharField(max_length=20, choices=GATEWAY_CHOICES, default='paystack')
    gateway_order_id = models.CharField(
        max_length=100,
        unique=True,
        help_text='Our payment reference, sent to the gateway'
    )
    gateway_payment_id = models.CharField(max_length=100, blank=True, db_index=True)
    gateway_response = models.JSONField(default=dict, blank=True)

    # Refund accounting
    refund_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    refund_reason = models.TextField(blank=True)
    refund_date = models.DateTimeField(null=True, blank=True)

    payment_date = models.DateTimeField(null=True, blank=True)
    confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='confirmed_payments'
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payments'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['buyer', '-created_at'], name='payments_buyer_created_idx'),
            models.Index(fields=['payment_status', 'created_at'], name='payments_status_created_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(refund_amount__gte=0) & models.Q(refund_amount__lte=models.F('amount')),
                name='payment_refund_within_amount'
            ),
        ]

    def __str__(self):
        return f"Payment {self.gateway_order_id} ({self.payment_status})"

    @property
    def is_gateway_payment(self):
        return self.payment_method in GATEWAY_METHODS

    @property
    def refundable_amount(self):
        return self.amount - self.refund_amount


class PaymentTransaction(models.Model):
    """Append-only ledger of gateway interactions for a payment."""

    TYPE_CHOICES = [
        ('payment', 'Payment'),
        ('refund', 'Refund'),
        ('capture', 'Capture'),
        ('authorize', 'Authorize'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('success', 'Success'),
        ('failed', 'Failed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment = models.ForeignKey(
        Payment,
        on_delete=models.CASCADE,
        related_name='transactions'
    )
    transaction_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default='INR')

    gateway_transaction_id = models.CharField(max_length=100, blank=True)
    gateway_response = models.JSONField(default=dict, blank=True)
    error_code = models.CharField(max_length=50, blank=True)
    error_message = models.TextField(blank=True)

    idempotency_key = models.CharField(max_length=100, unique=True, null=True, blank=True)
    reason = models.TextField(blank=True)
    initiated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payment_transactions'
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payment_transactions'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.transaction_type} {self.amount} ({self.status})"
