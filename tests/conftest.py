"""
Shared pytest fixtures for marketplace order and payment tests.
"""
import uuid
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

User = get_user_model()


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear cache before and after each test to prevent pollution."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """API client for making requests."""
    return APIClient()


def make_user(role, **kwargs):
    suffix = uuid.uuid4().hex[:8]
    defaults = {
        'username': f'{role.lower()}_{suffix}',
        'email': f'{role.lower()}_{suffix}@example.com',
        'password': 'testpass123',
        'first_name': 'Test',
        'last_name': role.title(),
    }
    defaults.update(kwargs)
    return User.objects.create_user(role=role, **defaults)


@pytest.fixture
def buyer(db):
    return make_user('BUYER')


@pytest.fixture
def other_buyer(db):
    return make_user('BUYER')


@pytest.fixture
def farmer(db):
    """Verified farmer."""
    return make_user('FARMER', is_verified=True)


@pytest.fixture
def other_farmer(db):
    return make_user('FARMER', is_verified=True)


@pytest.fixture
def admin_user(db):
    return make_user('ADMIN', is_staff=True)


@pytest.fixture
def farm(db, farmer, admin_user):
    """Approved, active farm owned by the farmer."""
    from farms.models import Farm

    farm = Farm.objects.create(
        owner=farmer,
        farm_name='Green Valley Farm',
        location='Kumasi',
    )
    farm.approve(admin_user)
    return farm


@pytest.fixture
def product(db, farm, farmer):
    """10.00 per kg, 5 kg in stock, minimum order 2 kg."""
    from marketplace.models import Product

    return Product.objects.create(
        farmer=farmer,
        farm=farm,
        name='Tomatoes',
        unit_type='kg',
        price_per_unit=Decimal('10.00'),
        available_quantity=Decimal('5'),
        min_order_quantity=Decimal('2'),
    )


@pytest.fixture
def second_product(db, farm, farmer):
    from marketplace.models import Product

    return Product.objects.create(
        farmer=farmer,
        farm=farm,
        name='Onions',
        unit_type='kg',
        price_per_unit=Decimal('4.50'),
        available_quantity=Decimal('20'),
        min_order_quantity=Decimal('1'),
    )


@pytest.fixture
def make_paid_payment(db):
    """Factory for a gateway payment already confirmed as paid."""
    from django.utils import timezone
    from payments.models import Payment, PaymentStatus
    from payments.services.gateway import PaystackGateway

    def _make(buyer, farmer, amount, payment_method='card', currency='INR', status=PaymentStatus.PAID):
        return Payment.objects.create(
            buyer=buyer,
            farmer=farmer,
            payment_method=payment_method,
            payment_status=status,
            amount=Decimal(amount),
            currency=currency,
            gateway='paystack',
            gateway_order_id=PaystackGateway.generate_reference(),
            gateway_payment_id='4099260516' if status == PaymentStatus.PAID else '',
            payment_date=timezone.now() if status == PaymentStatus.PAID else None,
        )

    return _make


@pytest.fixture
def make_order(db):
    """Factory that commits an order through the engine."""
    from orders.models import OrderStatus
    from orders.services.commit import OrderCommitEngine

    def _make(buyer, farmer, items, payment=None, initial_status=OrderStatus.CONFIRMED):
        if payment is None:
            confirmation = {'payment_method': 'cod'}
            initial_status = OrderStatus.PENDING
        else:
            confirmation = {
                'payment_method': payment.payment_method,
                'payment_status': payment.payment_status,
                'transaction_id': payment.gateway_order_id,
            }
        return OrderCommitEngine().commit(
            buyer=buyer,
            farmer_id=str(farmer.pk),
            items=items,
            delivery={'delivery_address': '12 Market Road, Accra'},
            payment_confirmation=confirmation,
            initial_status=initial_status,
        )

    return _make
