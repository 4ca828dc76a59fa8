"""
Payment Confirmation Test Suite

Tests cover:
1. Checkout payment creation (quote + gateway intent)
2. Signed checkout callback (HMAC-SHA256)
3. Paystack webhooks (HMAC-SHA512 of the raw body)
4. Order mirror of the payment status
5. Expiry of abandoned checkout payments

Run with: pytest tests/integration/test_payment_confirmation.py -v
"""

import hashlib
import hmac
import json
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.utils import timezone

from payments.exceptions import PaymentSignatureError
from payments.models import Payment, PaymentStatus, PaymentTransaction
from payments.services.gateway import PaymentGatewayError, PaystackGateway
from payments.services.payment_service import PaymentService
from payments.tasks import expire_stale_payments

WEBHOOK_URL = '/api/payments/webhooks/paystack/'
VERIFY_URL = '/api/payments/verify/'
CREATE_URL = '/api/payments/create/'


def sign_webhook(body: bytes, secret='whsec_test_secret'):
    return hmac.new(secret.encode('utf-8'), body, hashlib.sha512).hexdigest()


def post_webhook(api_client, event, signature=None):
    body = json.dumps(event).encode('utf-8')
    return api_client.generic(
        'POST', WEBHOOK_URL, body,
        content_type='application/json',
        HTTP_X_PAYSTACK_SIGNATURE=signature if signature is not None else sign_webhook(body),
    )


@pytest.fixture
def pending_payment(buyer, farmer, make_paid_payment):
    return make_paid_payment(buyer, farmer, '30.00', status=PaymentStatus.PENDING)


# =============================================================================
# CHECKOUT PAYMENT CREATION
# =============================================================================

@pytest.mark.django_db
class TestCreateCheckoutPayment:

    @patch.object(PaystackGateway, 'initialize_transaction')
    def test_creates_pending_payment_with_quote(self, mock_init, api_client, buyer, farmer, product):
        mock_init.return_value = {
            'authorization_url': 'https://checkout.paystack.test/abc',
            'access_code': 'abc',
            'reference': 'ignored',
        }
        api_client.force_authenticate(user=buyer)

        response = api_client.post(CREATE_URL, {
            'farmer_id': str(farmer.pk),
            'items': [{'product_id': str(product.pk), 'quantity': 3}],
            'payment_method': 'card',
        }, format='json')

        assert response.status_code == 201
        assert response.data['authorization_url'] == 'https://checkout.paystack.test/abc'

        payment = Payment.objects.get(gateway_order_id=response.data['reference'])
        assert payment.payment_status == PaymentStatus.PENDING
        assert payment.amount == Decimal('30.00')
        assert payment.quote[0]['quantity'] == '3.00'
        assert payment.order_id is None
        assert mock_init.call_args.kwargs['amount'] == Decimal('30.00')

        product.refresh_from_db()
        assert product.available_quantity == Decimal('5')

    @patch.object(PaystackGateway, 'initialize_transaction')
    def test_invalid_basket_creates_nothing(self, mock_init, api_client, buyer, farmer, product):
        api_client.force_authenticate(user=buyer)

        response = api_client.post(CREATE_URL, {
            'farmer_id': str(farmer.pk),
            'items': [{'product_id': str(product.pk), 'quantity': 9}],
            'payment_method': 'card',
        }, format='json')

        assert response.status_code == 400
        assert response.data['message'] == "Insufficient quantity for Tomatoes. Available: 5"
        assert Payment.objects.count() == 0
        mock_init.assert_not_called()

    @patch.object(PaystackGateway, 'initialize_transaction')
    def test_gateway_error_marks_payment_failed(self, mock_init, api_client, buyer, farmer, product):
        mock_init.side_effect = PaymentGatewayError('Payment gateway timeout. Please try again.', code='TIMEOUT')
        api_client.force_authenticate(user=buyer)

        response = api_client.post(CREATE_URL, {
            'farmer_id': str(farmer.pk),
            'items': [{'product_id': str(product.pk), 'quantity': 3}],
            'payment_method': 'card',
        }, format='json')

        assert response.status_code == 502
        assert response.data['code'] == 'TIMEOUT'
        assert Payment.objects.get().payment_status == PaymentStatus.FAILED


# =============================================================================
# CHECKOUT CALLBACK
# =============================================================================

@pytest.mark.django_db
class TestCheckoutCallback:

    def test_valid_signature_marks_paid(self, api_client, buyer, pending_payment):
        signature = PaystackGateway.sign_callback(pending_payment.gateway_order_id, '4099260516')
        api_client.force_authenticate(user=buyer)

        response = api_client.post(VERIFY_URL, {
            'gateway_order_id': pending_payment.gateway_order_id,
            'gateway_payment_id': '4099260516',
            'signature': signature,
        }, format='json')

        assert response.status_code == 200
        pending_payment.refresh_from_db()
        assert pending_payment.payment_status == PaymentStatus.PAID
        assert pending_payment.gateway_payment_id == '4099260516'
        assert pending_payment.payment_date is not None

    def test_invalid_signature_changes_nothing(self, api_client, buyer, pending_payment):
        api_client.force_authenticate(user=buyer)

        response = api_client.post(VERIFY_URL, {
            'gateway_order_id': pending_payment.gateway_order_id,
            'gateway_payment_id': '4099260516',
            'signature': 'deadbeef',
        }, format='json')

        assert response.status_code == 400
        assert response.data['message'] == "Invalid payment signature"
        pending_payment.refresh_from_db()
        assert pending_payment.payment_status == PaymentStatus.PENDING

    def test_signature_for_other_payment_id_rejected(self, pending_payment):
        signature = PaystackGateway.sign_callback(pending_payment.gateway_order_id, '111')

        with pytest.raises(PaymentSignatureError):
            PaymentService.confirm_callback(pending_payment.gateway_order_id, '222', signature)

    def test_confirmation_is_idempotent(self, pending_payment):
        signature = PaystackGateway.sign_callback(pending_payment.gateway_order_id, '4099260516')

        PaymentService.confirm_callback(pending_payment.gateway_order_id, '4099260516', signature)
        PaymentService.confirm_callback(pending_payment.gateway_order_id, '4099260516', signature)

        assert PaymentTransaction.objects.filter(
            payment=pending_payment, transaction_type='payment', status='success'
        ).count() == 1

    def test_callback_then_order(self, api_client, buyer, farmer, product, pending_payment):
        """Full gateway path: callback confirms, then the order is committed."""
        signature = PaystackGateway.sign_callback(pending_payment.gateway_order_id, '4099260516')
        api_client.force_authenticate(user=buyer)
        api_client.post(VERIFY_URL, {
            'gateway_order_id': pending_payment.gateway_order_id,
            'gateway_payment_id': '4099260516',
            'signature': signature,
        }, format='json')

        response = api_client.post('/api/orders/create-after-payment/', {
            'farmer_id': str(farmer.pk),
            'items': [{'product_id': str(product.pk), 'quantity': 3}],
            'delivery_address': '12 Market Road',
            'payment_method': 'card',
            'payment_status': 'paid',
            'transaction_id': pending_payment.gateway_order_id,
        }, format='json')

        assert response.status_code == 201
        assert response.data['order']['payment_status'] == 'paid'
        assert response.data['order']['transaction_id'] == '4099260516'


# =============================================================================
# WEBHOOKS
# =============================================================================

@pytest.mark.django_db
class TestPaystackWebhook:

    def test_charge_success_marks_paid(self, api_client, pending_payment):
        response = post_webhook(api_client, {
            'event': 'charge.success',
            'data': {'reference': pending_payment.gateway_order_id, 'id': 777, 'amount': 3000},
        })

        assert response.status_code == 200
        assert response.data['result'] == 'paid'
        pending_payment.refresh_from_db()
        assert pending_payment.payment_status == PaymentStatus.PAID
        assert pending_payment.gateway_payment_id == '777'

    def test_duplicate_webhook_is_acknowledged(self, api_client, pending_payment):
        event = {
            'event': 'charge.success',
            'data': {'reference': pending_payment.gateway_order_id, 'id': 777, 'amount': 3000},
        }
        post_webhook(api_client, event)
        response = post_webhook(api_client, event)

        assert response.status_code == 200
        assert response.data['result'] == 'already_processed'

    def test_bad_signature_rejected(self, api_client, pending_payment):
        response = post_webhook(api_client, {
            'event': 'charge.success',
            'data': {'reference': pending_payment.gateway_order_id, 'amount': 3000},
        }, signature='not-the-signature')

        assert response.status_code == 400
        pending_payment.refresh_from_db()
        assert pending_payment.payment_status == PaymentStatus.PENDING

    def test_amount_mismatch_not_marked_paid(self, api_client, pending_payment):
        response = post_webhook(api_client, {
            'event': 'charge.success',
            'data': {'reference': pending_payment.gateway_order_id, 'amount': 100},
        })

        assert response.status_code == 400
        pending_payment.refresh_from_db()
        assert pending_payment.payment_status == PaymentStatus.PENDING

    def test_charge_failed_marks_failed(self, api_client, pending_payment):
        response = post_webhook(api_client, {
            'event': 'charge.failed',
            'data': {'reference': pending_payment.gateway_order_id, 'gateway_response': 'Declined'},
        })

        assert response.status_code == 200
        pending_payment.refresh_from_db()
        assert pending_payment.payment_status == PaymentStatus.FAILED
        assert pending_payment.failure_reason == 'Declined'

    def test_late_failure_does_not_downgrade_paid(self, api_client, buyer, farmer, make_paid_payment):
        payment = make_paid_payment(buyer, farmer, '30.00')

        post_webhook(api_client, {
            'event': 'charge.failed',
            'data': {'reference': payment.gateway_order_id},
        })

        payment.refresh_from_db()
        assert payment.payment_status == PaymentStatus.PAID

    def test_replayed_success_after_refund_is_acknowledged(self, api_client, buyer, farmer, make_paid_payment):
        payment = make_paid_payment(buyer, farmer, '30.00')
        Payment.objects.filter(pk=payment.pk).update(
            payment_status=PaymentStatus.REFUNDED, refund_amount=Decimal('30.00')
        )

        response = post_webhook(api_client, {
            'event': 'charge.success',
            'data': {'reference': payment.gateway_order_id, 'id': 777, 'amount': 3000},
        })

        assert response.status_code == 200
        assert response.data['result'] == 'already_processed'
        payment.refresh_from_db()
        assert payment.payment_status == PaymentStatus.REFUNDED
        assert payment.refund_amount == Decimal('30.00')

    def test_callback_after_refund_is_a_no_op(self, buyer, farmer, make_paid_payment):
        payment = make_paid_payment(buyer, farmer, '30.00')
        Payment.objects.filter(pk=payment.pk).update(
            payment_status=PaymentStatus.REFUNDED, refund_amount=Decimal('30.00')
        )
        signature = PaystackGateway.sign_callback(payment.gateway_order_id, '4099260516')

        result = PaymentService.confirm_callback(payment.gateway_order_id, '4099260516', signature)

        assert result.payment_status == PaymentStatus.REFUNDED

    def test_unknown_event_acknowledged(self, api_client):
        response = post_webhook(api_client, {'event': 'subscription.create', 'data': {}})

        assert response.status_code == 200
        assert response.data['result'] == 'ignored'

    def test_unknown_reference_acknowledged(self, api_client):
        response = post_webhook(api_client, {
            'event': 'charge.success', 'data': {'reference': 'PAY-NOPE', 'amount': 100},
        })

        assert response.status_code == 200
        assert response.data['result'] == 'unknown_reference'

    def test_webhook_syncs_linked_order(self, api_client, buyer, farmer, product, make_order):
        order = make_order(buyer, farmer, [{'product_id': str(product.pk), 'quantity': 2}])
        payment = Payment.objects.get(order=order)
        payment.payment_method = 'card'
        payment.gateway = 'paystack'
        payment.save()

        post_webhook(api_client, {
            'event': 'charge.success',
            'data': {'reference': payment.gateway_order_id, 'id': 42, 'amount': 2000},
        })

        order.refresh_from_db()
        assert order.payment_status == PaymentStatus.PAID
        assert order.transaction_id == '42'
        product.refresh_from_db()
        assert product.available_quantity == Decimal('3')


# =============================================================================
# EXPIRY
# =============================================================================

@pytest.mark.django_db
class TestExpireStalePayments:

    def test_old_unlinked_pending_payments_fail(self, buyer, farmer, product, make_paid_payment):
        stale = make_paid_payment(buyer, farmer, '30.00', status=PaymentStatus.PENDING)
        fresh = make_paid_payment(buyer, farmer, '30.00', status=PaymentStatus.PENDING)
        paid = make_paid_payment(buyer, farmer, '30.00')
        old = timezone.now() - timedelta(hours=3)
        Payment.objects.filter(pk__in=[stale.pk, paid.pk]).update(created_at=old)

        result = expire_stale_payments()

        assert result == {'expired': 1}
        stale.refresh_from_db()
        fresh.refresh_from_db()
        paid.refresh_from_db()
        assert stale.payment_status == PaymentStatus.FAILED
        assert stale.failure_reason == 'Payment expired'
        assert fresh.payment_status == PaymentStatus.PENDING
        assert paid.payment_status == PaymentStatus.PAID

        product.refresh_from_db()
        assert product.available_quantity == Decimal('5')
