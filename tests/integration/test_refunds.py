"""
Refund Test Suite

Tests cover:
1. Refund bounded by captured amount minus earlier refunds
2. Partial then full refund moves the payment to refunded
3. Idempotency key returns the first refund
4. Gateway failures are recorded and reported
5. Admin-only access

Run with: pytest tests/integration/test_refunds.py -v
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from marketplace.models import Product
from orders.exceptions import OrderValidationError
from orders.services.commit import OrderCommitEngine
from payments.exceptions import RefundError
from payments.models import PaymentStatus, PaymentTransaction
from payments.services.gateway import PaymentGatewayError, PaystackGateway
from payments.services.payment_service import PaymentService

REFUND_URL = '/api/payments/refund/'


@pytest.fixture
def paid_order(buyer, farmer, product, make_paid_payment, make_order):
    payment = make_paid_payment(buyer, farmer, '30.00')
    order = make_order(buyer, farmer, [{'product_id': str(product.pk), 'quantity': 3}], payment=payment)
    return order, payment


@pytest.fixture
def mock_gateway_refund():
    with patch.object(PaystackGateway, 'refund_transaction') as mock_refund:
        mock_refund.return_value = {'id': 9001, 'status': 'pending'}
        yield mock_refund


# =============================================================================
# SERVICE
# =============================================================================

@pytest.mark.django_db
class TestRefundService:

    def test_partial_refund(self, paid_order, admin_user, mock_gateway_refund):
        order, payment = paid_order

        refund_txn, created = PaymentService.refund(order.pk, Decimal('10.00'), 'Bruised tomatoes', admin_user)

        assert created is True
        assert refund_txn.status == 'success'
        assert refund_txn.gateway_transaction_id == '9001'
        payment.refresh_from_db()
        assert payment.refund_amount == Decimal('10.00')
        assert payment.payment_status == PaymentStatus.PAID
        mock_gateway_refund.assert_called_once_with(
            payment.gateway_order_id, amount=Decimal('10.00'), reason='Bruised tomatoes'
        )

    def test_refund_cannot_exceed_remaining_balance(self, paid_order, admin_user, mock_gateway_refund):
        order, payment = paid_order
        PaymentService.refund(order.pk, Decimal('25.00'), 'Partial', admin_user)

        with pytest.raises(RefundError) as exc:
            PaymentService.refund(order.pk, Decimal('5.01'), 'Too much', admin_user)

        assert exc.value.message == "Refund amount exceeds available balance"
        payment.refresh_from_db()
        assert payment.refund_amount == Decimal('25.00')
        assert mock_gateway_refund.call_count == 1

    def test_full_refund_marks_refunded_and_syncs_order(self, paid_order, admin_user, mock_gateway_refund):
        order, payment = paid_order

        PaymentService.refund(order.pk, Decimal('10.00'), 'Partial', admin_user)
        PaymentService.refund(order.pk, Decimal('20.00'), 'Rest', admin_user)

        payment.refresh_from_db()
        order.refresh_from_db()
        assert payment.refund_amount == Decimal('30.00')
        assert payment.payment_status == PaymentStatus.REFUNDED
        assert order.payment_status == PaymentStatus.REFUNDED

    def test_refunded_payment_cannot_be_refunded_again(self, paid_order, admin_user, mock_gateway_refund):
        order, _ = paid_order
        PaymentService.refund(order.pk, Decimal('30.00'), 'Full', admin_user)

        with pytest.raises(RefundError) as exc:
            PaymentService.refund(order.pk, Decimal('1.00'), 'Again', admin_user)
        assert exc.value.code == 'NOT_REFUNDABLE'

    def test_non_positive_amount_rejected(self, paid_order, admin_user, mock_gateway_refund):
        order, _ = paid_order

        with pytest.raises(RefundError):
            PaymentService.refund(order.pk, Decimal('0'), 'Nothing', admin_user)
        mock_gateway_refund.assert_not_called()

    def test_idempotency_key_returns_first_refund(self, paid_order, admin_user, mock_gateway_refund):
        order, payment = paid_order

        first, created_first = PaymentService.refund(
            order.pk, Decimal('10.00'), 'Bruised', admin_user, idempotency_key='refund-abc'
        )
        second, created_second = PaymentService.refund(
            order.pk, Decimal('10.00'), 'Bruised', admin_user, idempotency_key='refund-abc'
        )

        assert created_first is True
        assert created_second is False
        assert first.pk == second.pk
        payment.refresh_from_db()
        assert payment.refund_amount == Decimal('10.00')
        assert mock_gateway_refund.call_count == 1

    def test_gateway_failure_records_failed_transaction(self, paid_order, admin_user):
        order, payment = paid_order

        with patch.object(
            PaystackGateway, 'refund_transaction',
            side_effect=PaymentGatewayError('Transaction has been fully reversed', code='API_ERROR')
        ):
            with pytest.raises(RefundError) as exc:
                PaymentService.refund(order.pk, Decimal('10.00'), 'Bruised', admin_user)

        assert exc.value.code == 'GATEWAY_ERROR'
        payment.refresh_from_db()
        assert payment.refund_amount == Decimal('0.00')
        failed = PaymentTransaction.objects.get(payment=payment, transaction_type='refund')
        assert failed.status == 'failed'
        assert failed.error_message == 'Transaction has been fully reversed'

    def test_cash_payment_refund_skips_gateway(self, buyer, farmer, product, admin_user, make_order, mock_gateway_refund):
        order = make_order(buyer, farmer, [{'product_id': str(product.pk), 'quantity': 2}])
        PaymentService.confirm_cod(order.pk, admin_user)

        PaymentService.refund(order.pk, Decimal('20.00'), 'Returned', admin_user)

        mock_gateway_refund.assert_not_called()
        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.REFUNDED


# =============================================================================
# API
# =============================================================================

@pytest.mark.django_db
class TestRefundEndpoint:

    def test_admin_refund(self, api_client, paid_order, admin_user, mock_gateway_refund):
        order, _ = paid_order
        api_client.force_authenticate(user=admin_user)

        response = api_client.post(REFUND_URL, {
            'order_id': str(order.pk),
            'amount': '12.50',
            'reason': 'Late delivery',
            'idempotency_key': 'r-1',
        }, format='json')

        assert response.status_code == 201
        assert response.data['payment']['refund_amount'] == '12.50'
        assert response.data['payment']['refundable_amount'] == '17.50'

        repeat = api_client.post(REFUND_URL, {
            'order_id': str(order.pk),
            'amount': '12.50',
            'reason': 'Late delivery',
            'idempotency_key': 'r-1',
        }, format='json')
        assert repeat.status_code == 200
        assert repeat.data['refund']['id'] == response.data['refund']['id']

    def test_over_refund_returns_400(self, api_client, paid_order, admin_user, mock_gateway_refund):
        order, _ = paid_order
        api_client.force_authenticate(user=admin_user)

        response = api_client.post(REFUND_URL, {
            'order_id': str(order.pk), 'amount': '30.01', 'reason': 'Too much',
        }, format='json')

        assert response.status_code == 400
        assert response.data['message'] == "Refund amount exceeds available balance"

    def test_buyer_cannot_refund(self, api_client, paid_order, buyer, mock_gateway_refund):
        order, _ = paid_order
        api_client.force_authenticate(user=buyer)

        response = api_client.post(REFUND_URL, {
            'order_id': str(order.pk), 'amount': '5.00', 'reason': 'Please',
        }, format='json')

        assert response.status_code == 403
        mock_gateway_refund.assert_not_called()


# =============================================================================
# PAYMENTS WITHOUT AN ORDER
# =============================================================================

@pytest.mark.django_db
class TestRefundUnlinkedPayment:
    """A paid checkout whose commit was rejected keeps the money on a Payment with no order."""

    @pytest.fixture
    def stranded_payment(self, buyer, farmer, product, make_paid_payment):
        payment = make_paid_payment(buyer, farmer, '30.00')
        Product.objects.filter(pk=product.pk).update(available_quantity=Decimal('2'))

        with pytest.raises(OrderValidationError):
            OrderCommitEngine().commit(
                buyer=buyer,
                farmer_id=str(farmer.pk),
                items=[{'product_id': str(product.pk), 'quantity': 3}],
                delivery={'delivery_address': '12 Market Road, Accra'},
                payment_confirmation={
                    'payment_method': 'card',
                    'payment_status': 'paid',
                    'transaction_id': payment.gateway_order_id,
                },
            )

        payment.refresh_from_db()
        assert payment.order_id is None
        assert payment.payment_status == PaymentStatus.PAID
        return payment

    def test_refund_by_payment_id(self, api_client, admin_user, stranded_payment, mock_gateway_refund):
        api_client.force_authenticate(user=admin_user)

        response = api_client.post(REFUND_URL, {
            'payment_id': str(stranded_payment.pk),
            'amount': '30.00',
            'reason': 'Stock sold out before the order was placed',
        }, format='json')

        assert response.status_code == 201
        stranded_payment.refresh_from_db()
        assert stranded_payment.payment_status == PaymentStatus.REFUNDED
        assert stranded_payment.refund_amount == Decimal('30.00')
        mock_gateway_refund.assert_called_once_with(
            stranded_payment.gateway_order_id,
            amount=Decimal('30.00'),
            reason='Stock sold out before the order was placed',
        )

    def test_service_refund_by_payment_id(self, admin_user, stranded_payment, mock_gateway_refund):
        refund_txn, created = PaymentService.refund(
            None, Decimal('5.00'), 'Partial', admin_user, payment_id=stranded_payment.pk
        )

        assert created is True
        assert refund_txn.payment_id == stranded_payment.pk

    def test_exactly_one_identifier_required(self, api_client, admin_user, paid_order, mock_gateway_refund):
        order, payment = paid_order
        api_client.force_authenticate(user=admin_user)

        both = api_client.post(REFUND_URL, {
            'order_id': str(order.pk), 'payment_id': str(payment.pk),
            'amount': '5.00', 'reason': 'Both',
        }, format='json')
        neither = api_client.post(REFUND_URL, {'amount': '5.00', 'reason': 'Neither'}, format='json')

        assert both.status_code == 400
        assert neither.status_code == 400
        mock_gateway_refund.assert_not_called()

    def test_unknown_payment_id(self, api_client, admin_user, mock_gateway_refund):
        api_client.force_authenticate(user=admin_user)

        response = api_client.post(REFUND_URL, {
            'payment_id': '00000000-0000-0000-0000-000000000000',
            'amount': '5.00', 'reason': 'Missing',
        }, format='json')

        assert response.status_code == 404
