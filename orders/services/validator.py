"""
Order Validator

Checks a single-farmer basket against the live catalog and prices it, without
writing anything. Used twice per checkout:

1. Before payment, to quote the amount sent to the gateway.
2. Inside the commit transaction (lock=True), immediately before stock is
   reserved, because stock or approval state may have changed while the buyer
   was at the gateway.

The first failing rule is raised as OrderValidationError; the messages are
shown to buyers verbatim.
"""

import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from django.contrib.auth import get_user_model

from marketplace.models import Product
from orders.exceptions import OrderValidationError
from orders.models import money

logger = logging.getLogger(__name__)

User = get_user_model()


def format_quantity(value: Decimal) -> str:
    """Render 2.00 as '2' and 2.50 as '2.5' for messages."""
    return format(Decimal(value).normalize(), 'f')


class OrderValidator:
    """
    Usage:
        result = OrderValidator().validate(buyer, farmer_id, [
            {'product_id': '...', 'quantity': 3},
        ])
        result['total_amount']  # Decimal('30.00')

    With lock=True the product rows are locked (SELECT ... FOR UPDATE, in
    primary key order) before any quantity is read. Only valid inside
    transaction.atomic().
    """

    def __init__(self, lock: bool = False):
        self.lock = lock

    def validate(self, buyer, farmer_id, items) -> Dict[str, Any]:
        farmer = self._validate_farmer(farmer_id, items)
        requested = self._normalize_items(items)
        products = self._load_products([product_id for product_id, _ in requested])

        validated_items = []
        total_amount = Decimal('0.00')

        for product_id, quantity in requested:
            product = products.get(product_id)
            self._check_product(product, product_id, farmer, quantity)

            unit_price = product.price_per_unit
            total_price = money(unit_price * quantity)
            total_amount += total_price

            validated_items.append({
                'product': product,
                'product_id': product.pk,
                'product_name': product.name,
                'unit_type': product.unit_type,
                'quantity': quantity,
                'unit_price': unit_price,
                'total_price': total_price,
                'available_quantity': product.available_quantity,
            })

        if total_amount <= 0:
            self._fail("Invalid order total", 'INVALID_TOTAL', 'items')

        logger.debug(
            f"Order validated for buyer {getattr(buyer, 'pk', None)}: "
            f"farmer={farmer.pk} items={len(validated_items)} total={total_amount}"
        )

        return {
            'farmer': farmer,
            'items': validated_items,
            'total_amount': total_amount,
        }

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _validate_farmer(self, farmer_id, items):
        if not farmer_id or not items:
            self._fail(
                "Farmer ID and at least one item are required",
                'MISSING_FIELDS',
                'farmer_id' if not farmer_id else 'items'
            )

        farmer_uuid = self._parse_uuid(farmer_id)
        if farmer_uuid is None:
            self._fail("Invalid farmer ID format", 'INVALID_FARMER_ID', 'farmer_id')

        farmer = User.objects.filter(pk=farmer_uuid).first()
        if farmer is None:
            self._fail("Farmer not found", 'FARMER_NOT_FOUND', 'farmer_id')
        if farmer.role != User.UserRole.FARMER:
            self._fail("User is not a farmer", 'NOT_A_FARMER', 'farmer_id')
        if not farmer.is_verified:
            self._fail("Farmer account is not verified", 'FARMER_NOT_VERIFIED', 'farmer_id')

        return farmer

    def _normalize_items(self, items) -> List[tuple]:
        """Parse ids and quantities; repeated products are merged into one line."""
        if not isinstance(items, (list, tuple)):
            self._fail("Items must be a list", 'INVALID_ITEMS', 'items')

        merged = {}
        for item in items:
            if not isinstance(item, dict):
                self._fail(
                    "Each item must have product_id and positive quantity",
                    'INVALID_ITEM', 'items'
                )

            raw_product_id = item.get('product_id')
            quantity = self._parse_quantity(item.get('quantity'))
            if not raw_product_id or quantity is None:
                self._fail(
                    "Each item must have product_id and positive quantity",
                    'INVALID_ITEM', 'items'
                )

            product_id = self._parse_uuid(raw_product_id)
            if product_id is None:
                self._fail("Invalid product ID format", 'INVALID_PRODUCT_ID', 'items')

            merged[product_id] = merged.get(product_id, Decimal('0')) + quantity

        return list(merged.items())

    def _load_products(self, product_ids):
        queryset = Product.objects.select_related('farm', 'farmer').filter(pk__in=product_ids)
        if self.lock:
            queryset = queryset.select_for_update(nowait=False, of=('self',))
        return {product.pk: product for product in queryset.order_by('id')}

    def _check_product(self, product, product_id, farmer, quantity):
        if product is None or product.farmer_id != farmer.pk or not product.is_available:
            self._fail(
                f"Product {product_id} not available or does not belong to this farmer",
                'PRODUCT_UNAVAILABLE', 'items'
            )

        # Approval can be withdrawn between listing and checkout
        if not product.farm.accepts_orders:
            self._fail(
                f"Farm for {product.name} is not approved",
                'FARM_NOT_APPROVED', 'items'
            )
        if not product.farmer.is_verified:
            self._fail(
                f"Farmer for {product.name} is not verified",
                'FARMER_NOT_VERIFIED', 'items'
            )

        if quantity > product.available_quantity:
            self._fail(
                f"Insufficient quantity for {product.name}. "
                f"Available: {format_quantity(product.available_quantity)}",
                'INSUFFICIENT_QUANTITY', 'items'
            )

        if quantity < product.min_order_quantity:
            self._fail(
                f"Minimum order quantity for {product.name} is "
                f"{format_quantity(product.min_order_quantity)}",
                'BELOW_MINIMUM_QUANTITY', 'items'
            )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_uuid(value):
        try:
            return uuid.UUID(str(value))
        except (TypeError, ValueError, AttributeError):
            return None

    @staticmethod
    def _parse_quantity(value):
        if value is None or isinstance(value, bool):
            return None
        try:
            quantity = money(Decimal(str(value)))
        except (InvalidOperation, ValueError):
            return None
        if not quantity.is_finite() or quantity <= 0:
            return None
        return quantity

    @staticmethod
    def _fail(message: str, code: str, field: str = None):
        logger.info(f"Order validation rejected ({code}): {message}")
        raise OrderValidationError(message, code=code, field=field)
