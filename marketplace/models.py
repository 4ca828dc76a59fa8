"""
Marketplace Catalog Models

Products listed by farmers. A product row is the single source of truth for
its stock: available_quantity is only changed through reserve_stock() and
restore_stock(), which run as guarded UPDATE statements inside the caller's
transaction.

Invariants:
- available_quantity >= 0 (database check constraint)
- is_available is False whenever available_quantity == 0
"""

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Case, F, Value, When
from django.utils import timezone
from decimal import Decimal
import uuid


class ProductCategory(models.Model):
    """
    Product categories for marketplace listings.
    System-wide categories managed by admins.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, unique=True)
    slug = models.SlugField(max_length=100, unique=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'marketplace_product_categories'
        verbose_name = 'Product Category'
        verbose_name_plural = 'Product Categories'
        ordering = ['name']

    def __str__(self):
        return self.name


class Product(models.Model):
    """
    Marketplace product listing.

    Owned by a farmer and belongs to one of the farmer's farms. Orderable only
    while the farm is approved and active and the farmer is verified.
    """
    UNIT_CHOICES = [
        ('kg', 'Kilogram'),
        ('g', 'Gram'),
        ('litre', 'Litre'),
        ('piece', 'Piece'),
        ('dozen', 'Dozen'),
        ('bunch', 'Bunch'),
        ('crate', 'Crate'),
        ('bag', 'Bag'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    farmer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='products',
        help_text='Farmer who sells this product'
    )
    farm = models.ForeignKey(
        'farms.Farm',
        on_delete=models.CASCADE,
        related_name='products',
        help_text='The farm that owns this product listing'
    )
    category = models.ForeignKey(
        ProductCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products'
    )

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    # Pricing
    unit_type = models.CharField(max_length=20, choices=UNIT_CHOICES, default='kg')
    price_per_unit = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    # Inventory
    available_quantity = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    min_order_quantity = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('1.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    # Visibility
    is_listed = models.BooleanField(
        default=True,
        help_text='Farmer switch; unlisted products are never available'
    )
    is_available = models.BooleanField(default=True, db_index=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'marketplace_products'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['farmer', 'is_available'], name='products_farmer_avail_idx'),
            models.Index(fields=['farm', '-created_at'], name='products_farm_created_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(available_quantity__gte=0),
                name='product_available_quantity_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.name} - {self.farm.farm_name}"

    def save(self, *args, **kwargs):
        self.is_available = self.available_quantity > 0 and self.is_listed
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'available_quantity' in update_fields:
            kwargs['update_fields'] = set(update_fields) | {'is_available'}
        super().save(*args, **kwargs)

    @classmethod
    def reserve_stock(cls, product_id, quantity):
        """
        Decrement stock only if enough is left.

        Returns False when the guarded UPDATE matched no row, meaning another
        order took the stock first. SET expressions read the pre-update row,
        so is_available reflects the new quantity.
        """
        quantity = Decimal(str(quantity))
        updated = cls.objects.filter(
            pk=product_id,
            available_quantity__gte=quantity,
        ).update(
            available_quantity=F('available_quantity') - quantity,
            is_available=Case(
                When(available_quantity__gt=quantity, is_listed=True, then=Value(True)),
                default=Value(False),
                output_field=models.BooleanField(),
            ),
            updated_at=timezone.now(),
        )
        return updated == 1

    @classmethod
    def restore_stock(cls, product_id, quantity):
        """Put quantity back on the shelf after an order is cancelled."""
        quantity = Decimal(str(quantity))
        return cls.objects.filter(pk=product_id).update(
            available_quantity=F('available_quantity') + quantity,
            is_available=Case(
                When(is_listed=True, then=Value(True)),
                default=Value(False),
                output_field=models.BooleanField(),
            ),
            updated_at=timezone.now(),
        ) == 1
