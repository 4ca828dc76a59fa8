"""
Order Models

Orders are created only by OrderCommitEngine, after the payment has been
confirmed (or as cash-on-delivery). Each order covers the products of a single
farmer.

OrderItem rows are price snapshots: unit_price is copied from the product at
commit time and never re-read afterwards. Items are never updated or deleted;
cancelling an order reverses their effect on stock instead.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.crypto import get_random_string
from decimal import Decimal, ROUND_HALF_UP
import uuid

from payments.models import PaymentStatus


class OrderStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    PROCESSING = 'processing', 'Processing'
    SHIPPED = 'shipped', 'Shipped'
    DELIVERED = 'delivered', 'Delivered'
    CANCELLED = 'cancelled', 'Cancelled'


class Order(models.Model):
    """A buyer's order from one farmer."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=50, unique=True, editable=False)

    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='orders'
    )
    farmer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='farmer_orders'
    )

    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default='INR')

    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True
    )

    # Mirror of the linked Payment; written only by PaymentService
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True
    )
    payment_method = models.CharField(max_length=20, blank=True)
    transaction_id = models.CharField(max_length=100, blank=True)

    # Delivery
    delivery_address = models.TextField()
    delivery_date = models.DateField(null=True, blank=True)
    special_instructions = models.TextField(blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    stock_restored_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text='Set once when cancellation puts item quantities back on the products'
    )

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['buyer', '-created_at'], name='orders_buyer_created_idx'),
            models.Index(fields=['farmer', '-created_at'], name='orders_farmer_created_idx'),
            models.Index(fields=['farmer', 'status'], name='orders_farmer_status_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount__gt=0),
                name='order_total_amount_positive'
            ),
        ]

    def __str__(self):
        return f"Order {self.order_number}"

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = self._generate_order_number()
        super().save(*args, **kwargs)

    def _generate_order_number(self):
        """Generate order number: ORD-YYYYMMDDHHMMSS-XXXXX"""
        prefix = getattr(settings, 'ORDER_NUMBER_PREFIX', 'ORD')
        date_part = timezone.now().strftime('%Y%m%d%H%M%S')
        random_part = get_random_string(5, allowed_chars='ABCDEFGHJKLMNPQRSTUVWXYZ23456789')
        return f"{prefix}-{date_part}-{random_part}"

    @property
    def items_total(self):
        return sum((item.total_price for item in self.items.all()), Decimal('0.00'))

    def is_participant(self, user):
        return user.pk in (self.buyer_id, self.farmer_id)


class OrderItem(models.Model):
    """Immutable line item with the product's price at order time."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items'
    )
    product = models.ForeignKey(
        'marketplace.Product',
        on_delete=models.PROTECT,
        related_name='order_items'
    )
    farmer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='sold_items'
    )

    # Snapshot of product at time of order
    product_name = models.CharField(max_length=200)
    unit_type = models.CharField(max_length=20)
    quantity = models.DecimalField(max_digits=10, decimal_places=2)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_price = models.DecimalField(max_digits=10, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_items'
        ordering = ['created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name='order_item_quantity_positive'
            ),
        ]

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Order items are immutable once created")
        self.total_price = money(self.unit_price * self.quantity)
        super().save(*args, **kwargs)


def money(value):
    """Round a Decimal amount to cents, half up."""
    return Decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
