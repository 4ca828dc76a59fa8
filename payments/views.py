"""
Payment Views

API endpoints for:
- Checkout payment creation (quote + gateway intent)
- Synchronous payment callback verification
- Paystack webhook handling
- Cash on delivery confirmation
- Admin refunds
- Payment history, details and statistics
"""

import json
import logging

from django.db.models import Count, Q, Sum
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt

from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdmin, IsBuyer, IsFarmerOrAdmin
from core.responses import error_response, failure
from orders.exceptions import OrderError
from orders.models import Order
from .exceptions import PaymentError
from .models import Payment, PaymentMethod, PaymentStatus
from .serializers import (
    CODConfirmSerializer,
    CreatePaymentSerializer,
    PaymentDetailSerializer,
    PaymentSerializer,
    PaymentTransactionSerializer,
    RefundSerializer,
    VerifyPaymentSerializer,
    payment_method_choices,
)
from .services.gateway import PaymentGatewayError, PaystackGateway
from .services.payment_service import PaymentService

logger = logging.getLogger(__name__)


# =============================================================================
# CHECKOUT
# =============================================================================

class CreatePaymentView(APIView):
    """
    POST /api/payments/create/

    Price the basket and open a gateway payment for it. Nothing is reserved;
    the order is created later by /api/orders/create-after-payment/.

    Request:
    {
        "farmer_id": "uuid",
        "items": [{"product_id": "uuid", "quantity": 3}],
        "payment_method": "card"
    }
    """
    permission_classes = [IsAuthenticated, IsBuyer]

    def post(self, request):
        serializer = CreatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            payment, gateway_data = PaymentService.create_checkout_payment(
                buyer=request.user,
                farmer_id=data.get('farmer_id'),
                items=data.get('items'),
                payment_method=data['payment_method'],
                currency=data.get('currency'),
                callback_url=data.get('callback_url'),
            )
        except (OrderError, PaymentError, PaymentGatewayError) as e:
            return error_response(e)

        return Response({
            'success': True,
            'payment': PaymentSerializer(payment).data,
            'authorization_url': gateway_data.get('authorization_url'),
            'reference': payment.gateway_order_id,
        }, status=status.HTTP_201_CREATED)


class VerifyPaymentView(APIView):
    """
    POST /api/payments/verify/

    Checkout callback. The signature must match before anything changes.

    Request:
    {
        "gateway_order_id": "PAY-20260105-A3B4C5D6E7F8",
        "gateway_payment_id": "4099260516",
        "signature": "hex hmac"
    }
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            payment = PaymentService.confirm_callback(
                gateway_order_id=data['gateway_order_id'],
                gateway_payment_id=data['gateway_payment_id'],
                signature=data['signature'],
                buyer=None if request.user.is_marketplace_admin else request.user,
            )
        except PaymentError as e:
            return error_response(e)

        return Response({
            'success': True,
            'message': 'Payment verified',
            'payment': PaymentSerializer(payment).data,
        })


@method_decorator(csrf_exempt, name='dispatch')
class PaystackWebhookView(APIView):
    """
    POST /api/payments/webhooks/paystack/

    Handle Paystack webhook events

    Events handled:
    - charge.success: Payment was successful
    - charge.failed: Payment failed
    - refund.processed: Refund completed at the gateway (logged)
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        signature = request.headers.get('X-Paystack-Signature', '')

        if not PaystackGateway.verify_webhook_signature(request.body, signature):
            logger.warning("Invalid Paystack webhook signature")
            return failure('Invalid signature', 'INVALID_SIGNATURE')

        try:
            event = json.loads(request.body)
            if not isinstance(event, dict):
                raise ValueError('Webhook payload must be an object')
        except ValueError:
            return failure('Invalid payload', 'INVALID_PAYLOAD')

        logger.info(f"Paystack webhook received: {event.get('event')}", extra={
            'reference': (event.get('data') or {}).get('reference'),
        })

        try:
            outcome = PaymentService.handle_webhook_event(event)
        except PaymentError as e:
            logger.error(f"Webhook rejected: {e.message}")
            return error_response(e)

        return Response({'success': True, 'result': outcome})


# =============================================================================
# CASH ON DELIVERY & REFUNDS
# =============================================================================

class CODConfirmView(APIView):
    """
    POST /api/payments/cod/confirm/

    Farmer (own orders) or admin confirms that cash was collected.
    """
    permission_classes = [IsAuthenticated, IsFarmerOrAdmin]

    def post(self, request):
        serializer = CODConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            payment = PaymentService.confirm_cod(serializer.validated_data['order_id'], request.user)
        except (OrderError, PaymentError) as e:
            return error_response(e)

        return Response({
            'success': True,
            'message': 'Cash payment confirmed',
            'payment': PaymentSerializer(payment).data,
        })


class RefundView(APIView):
    """
    POST /api/payments/refund/

    Request:
    {
        "order_id": "uuid",             # or "payment_id": "uuid"
        "amount": "10.00",
        "reason": "Damaged produce",
        "idempotency_key": "refund-123"   # optional
    }
    """
    permission_classes = [IsAuthenticated, IsAdmin]

    def post(self, request):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            refund_txn, created = PaymentService.refund(
                order_id=data.get('order_id'),
                amount=data['amount'],
                reason=data['reason'],
                actor=request.user,
                idempotency_key=data.get('idempotency_key') or None,
                payment_id=data.get('payment_id'),
            )
        except PaymentError as e:
            return error_response(e)

        payment = refund_txn.payment
        payment.refresh_from_db()
        return Response({
            'success': True,
            'message': 'Refund processed' if created else 'Refund already processed',
            'refund': PaymentTransactionSerializer(refund_txn).data,
            'payment': PaymentSerializer(payment).data,
        }, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


# =============================================================================
# READ ENDPOINTS
# =============================================================================

class PaymentDetailsView(APIView):
    """GET /api/payments/details/<order_id>/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, order_id):
        order = Order.objects.filter(pk=order_id).first()
        if order is None or not (request.user.is_marketplace_admin or order.is_participant(request.user)):
            return failure('Order not found or access denied', 'ORDER_NOT_FOUND', status.HTTP_404_NOT_FOUND)

        payments = order.payments.prefetch_related('transactions')
        return Response({
            'success': True,
            'order_id': str(order.pk),
            'payment_status': order.payment_status,
            'payments': PaymentDetailSerializer(payments, many=True).data,
        })


class UserPaymentsView(generics.ListAPIView):
    """GET /api/payments/user-payments/ - payments made or received by the caller"""
    permission_classes = [IsAuthenticated]
    serializer_class = PaymentSerializer

    def get_queryset(self):
        user = self.request.user
        queryset = Payment.objects.select_related('order').filter(Q(buyer=user) | Q(farmer=user))
        payment_status = self.request.query_params.get('status')
        if payment_status:
            queryset = queryset.filter(payment_status=payment_status)
        return queryset


class PaymentMethodsView(APIView):
    """GET /api/payments/methods/"""
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({'success': True, 'methods': payment_method_choices()})


class PaymentStatisticsView(APIView):
    """GET /api/payments/stats/ - admin totals by status and method"""
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        by_status = {
            row['payment_status']: {'count': row['count'], 'amount': row['amount']}
            for row in Payment.objects.values('payment_status').annotate(
                count=Count('id'), amount=Sum('amount')
            )
        }
        by_method = {
            row['payment_method']: {'count': row['count'], 'amount': row['amount']}
            for row in Payment.objects.filter(payment_status=PaymentStatus.PAID)
            .values('payment_method').annotate(count=Count('id'), amount=Sum('amount'))
        }
        refunded = Payment.objects.aggregate(total=Sum('refund_amount'))['total']

        return Response({
            'success': True,
            'by_status': {
                value: by_status.get(value, {'count': 0, 'amount': None})
                for value in PaymentStatus.values
            },
            'by_method': {
                value: by_method.get(value, {'count': 0, 'amount': None})
                for value in PaymentMethod.values
            },
            'total_refunded': refunded,
        })
