"""
Order Validator Test Suite

Tests cover:
1. Farmer checks (presence, id format, existence, role, verification)
2. Item checks (shape, id format, ownership, availability)
3. Farm approval and farmer verification at checkout time
4. Stock and minimum quantity rules
5. Pricing and read-only behaviour

Run with: pytest tests/integration/test_order_validation.py -v
"""

import uuid
from decimal import Decimal

import pytest

from orders.exceptions import OrderValidationError
from orders.services.validator import OrderValidator, format_quantity


def validate(buyer, farmer_id, items):
    return OrderValidator().validate(buyer, farmer_id, items)


# =============================================================================
# FARMER CHECKS
# =============================================================================

@pytest.mark.django_db
class TestFarmerChecks:

    def test_missing_farmer_id(self, buyer, product):
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, None, [{'product_id': str(product.pk), 'quantity': 2}])
        assert exc.value.message == "Farmer ID and at least one item are required"

    def test_empty_items(self, buyer, farmer):
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(farmer.pk), [])
        assert exc.value.message == "Farmer ID and at least one item are required"

    def test_malformed_farmer_id(self, buyer, product):
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, 'not-a-uuid', [{'product_id': str(product.pk), 'quantity': 2}])
        assert exc.value.message == "Invalid farmer ID format"

    def test_unknown_farmer(self, buyer, product):
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(uuid.uuid4()), [{'product_id': str(product.pk), 'quantity': 2}])
        assert exc.value.message == "Farmer not found"

    def test_user_is_not_a_farmer(self, buyer, other_buyer, product):
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(other_buyer.pk), [{'product_id': str(product.pk), 'quantity': 2}])
        assert exc.value.message == "User is not a farmer"

    def test_unverified_farmer(self, buyer, farmer, product):
        farmer.is_verified = False
        farmer.save()

        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(farmer.pk), [{'product_id': str(product.pk), 'quantity': 2}])
        assert exc.value.message == "Farmer account is not verified"


# =============================================================================
# ITEM CHECKS
# =============================================================================

@pytest.mark.django_db
class TestItemChecks:

    @pytest.mark.parametrize('item', [
        {'quantity': 2},
        {'product_id': 'x', 'quantity': 0},
        {'product_id': 'x', 'quantity': -1},
        {'product_id': 'x', 'quantity': 'abc'},
        {'product_id': 'x'},
    ])
    def test_item_shape(self, buyer, farmer, item):
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(farmer.pk), [item])
        assert exc.value.message == "Each item must have product_id and positive quantity"

    def test_malformed_product_id(self, buyer, farmer):
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(farmer.pk), [{'product_id': 'bad-id', 'quantity': 2}])
        assert exc.value.message == "Invalid product ID format"

    def test_unknown_product(self, buyer, farmer, farm):
        missing = uuid.uuid4()
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(farmer.pk), [{'product_id': str(missing), 'quantity': 2}])
        assert exc.value.message == (
            f"Product {missing} not available or does not belong to this farmer"
        )

    def test_product_of_another_farmer(self, buyer, other_farmer, product):
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(other_farmer.pk), [{'product_id': str(product.pk), 'quantity': 2}])
        assert "does not belong to this farmer" in exc.value.message

    def test_unlisted_product(self, buyer, farmer, product):
        product.is_listed = False
        product.save()

        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(farmer.pk), [{'product_id': str(product.pk), 'quantity': 2}])
        assert exc.value.code == 'PRODUCT_UNAVAILABLE'

    def test_farm_not_approved(self, buyer, farmer, farm, product, admin_user):
        farm.reject(admin_user, 'Incomplete documents')

        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(farmer.pk), [{'product_id': str(product.pk), 'quantity': 2}])
        assert exc.value.message == "Farm for Tomatoes is not approved"

    def test_inactive_farm(self, buyer, farmer, farm, product):
        farm.is_active = False
        farm.save()

        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(farmer.pk), [{'product_id': str(product.pk), 'quantity': 2}])
        assert exc.value.message == "Farm for Tomatoes is not approved"


# =============================================================================
# STOCK AND MINIMUM QUANTITY
# =============================================================================

@pytest.mark.django_db
class TestQuantityRules:

    def test_insufficient_quantity(self, buyer, farmer, product):
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(farmer.pk), [{'product_id': str(product.pk), 'quantity': 6}])
        assert exc.value.message == "Insufficient quantity for Tomatoes. Available: 5"
        assert exc.value.code == 'INSUFFICIENT_QUANTITY'

    def test_below_minimum(self, buyer, farmer, product):
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(farmer.pk), [{'product_id': str(product.pk), 'quantity': 1}])
        assert exc.value.message == "Minimum order quantity for Tomatoes is 2"

    def test_exact_stock_is_allowed(self, buyer, farmer, product):
        result = validate(buyer, str(farmer.pk), [{'product_id': str(product.pk), 'quantity': 5}])
        assert result['total_amount'] == Decimal('50.00')

    def test_duplicate_lines_are_merged(self, buyer, farmer, product):
        """Two lines of 3 for the same product exceed the 5 in stock."""
        with pytest.raises(OrderValidationError) as exc:
            validate(buyer, str(farmer.pk), [
                {'product_id': str(product.pk), 'quantity': 3},
                {'product_id': str(product.pk), 'quantity': 3},
            ])
        assert exc.value.code == 'INSUFFICIENT_QUANTITY'


# =============================================================================
# PRICING
# =============================================================================

@pytest.mark.django_db
class TestPricing:

    def test_total_is_sum_of_lines(self, buyer, farmer, product, second_product):
        result = validate(buyer, str(farmer.pk), [
            {'product_id': str(product.pk), 'quantity': 3},
            {'product_id': str(second_product.pk), 'quantity': '2.5'},
        ])

        assert result['farmer'] == farmer
        assert len(result['items']) == 2
        assert result['total_amount'] == Decimal('41.25')
        assert sum(line['total_price'] for line in result['items']) == result['total_amount']

    def test_validation_does_not_touch_stock(self, buyer, farmer, product):
        validate(buyer, str(farmer.pk), [{'product_id': str(product.pk), 'quantity': 3}])

        product.refresh_from_db()
        assert product.available_quantity == Decimal('5')
        assert product.is_available is True

    def test_format_quantity(self):
        assert format_quantity(Decimal('2.00')) == '2'
        assert format_quantity(Decimal('2.50')) == '2.5'
