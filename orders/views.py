"""
Order Views

Buyer checkout, farmer fulfilment and admin oversight of marketplace orders.

Checkout is two-phase:
1. POST /api/orders/validate/ (and /api/payments/create/) price the basket
   without reserving anything.
2. POST /api/orders/create-after-payment/ commits the order once the payment
   has been confirmed by the gateway. Stock is reserved only here.

Cash on delivery skips the gateway: POST /api/orders/ commits a pending order
with a pending cash payment.
"""

import logging

from django.conf import settings
from django.db import DatabaseError
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, status
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdmin, IsBuyer, IsFarmer
from core.responses import error_response, failure
from payments.exceptions import PaymentError
from payments.models import PaymentMethod, PaymentStatus
from payments.services.payment_service import PaymentService
from .exceptions import OrderError, OrderNotFoundError
from .filters import OrderFilter
from .models import Order, OrderStatus
from .serializers import (
    CreateCODOrderSerializer,
    CreateOrderAfterPaymentSerializer,
    OrderListSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
    PaymentStatusUpdateSerializer,
    ValidateOrderSerializer,
)
from .services.commit import OrderCommitEngine
from .services.lifecycle import update_order_status
from .services.statistics import order_statistics
from .services.validator import OrderValidator

logger = logging.getLogger(__name__)


def _order_queryset():
    return Order.objects.select_related('buyer', 'farmer').prefetch_related('items')


def _delivery(data):
    return {
        'delivery_address': data['delivery_address'],
        'delivery_date': data.get('delivery_date'),
        'special_instructions': data.get('special_instructions', ''),
    }


def _commit_failed(exc):
    logger.exception(f"Order creation failed: {exc}")
    body = {'success': False, 'message': 'Order creation failed', 'code': 'ORDER_CREATION_FAILED'}
    if settings.DEBUG:
        body['error'] = str(exc)
    return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


# =============================================================================
# CHECKOUT
# =============================================================================

class ValidateOrderView(APIView):
    """
    Price a basket before payment. Read-only.

    POST /api/orders/validate/
    {
        "farmer_id": "uuid",
        "items": [{"product_id": "uuid", "quantity": 3}],
        "currency": "INR"              # optional
    }

    Returns:
    {
        "success": true,
        "data": {"farmer": {...}, "items": [...], "total_amount": "30.00", "currency": "INR"}
    }
    """
    permission_classes = [IsAuthenticated, IsBuyer]

    def post(self, request):
        serializer = ValidateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = OrderValidator().validate(request.user, data.get('farmer_id'), data.get('items'))
        except OrderError as e:
            return error_response(e)

        farmer = result['farmer']
        return Response({
            'success': True,
            'data': {
                'farmer': {
                    'id': str(farmer.pk),
                    'name': farmer.get_full_name(),
                },
                'items': [
                    {
                        'product_id': str(line['product_id']),
                        'product_name': line['product_name'],
                        'unit_type': line['unit_type'],
                        'quantity': str(line['quantity']),
                        'unit_price': str(line['unit_price']),
                        'total_price': str(line['total_price']),
                        'available_quantity': str(line['available_quantity']),
                    }
                    for line in result['items']
                ],
                'total_amount': str(result['total_amount']),
                'currency': (data.get('currency') or settings.ORDER_CURRENCY).upper(),
            }
        })


class CreateOrderAfterPaymentView(APIView):
    """
    Commit an order backed by a confirmed gateway payment.

    POST /api/orders/create-after-payment/
    {
        "farmer_id": "uuid",
        "items": [{"product_id": "uuid", "quantity": 3}],
        "delivery_address": "...",
        "payment_method": "card",
        "payment_status": "paid",
        "transaction_id": "PAY-20260105-A3B4C5D6E7F8"
    }

    The basket is re-validated with the product rows locked; if stock ran out
    while the buyer was paying, nothing is created and the payment stays
    unlinked for refund.
    """
    permission_classes = [IsAuthenticated, IsBuyer]

    def post(self, request):
        serializer = CreateOrderAfterPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data['payment_method'] == PaymentMethod.COD:
            return failure(
                'Cash on delivery orders are placed without a gateway payment',
                'INVALID_PAYMENT_METHOD'
            )

        try:
            order = OrderCommitEngine().commit(
                buyer=request.user,
                farmer_id=data.get('farmer_id'),
                items=data.get('items'),
                delivery=_delivery(data),
                payment_confirmation={
                    'payment_method': data['payment_method'],
                    'payment_status': data['payment_status'],
                    'transaction_id': data.get('transaction_id'),
                },
                currency=data.get('currency'),
                initial_status=OrderStatus.CONFIRMED,
            )
        except OrderError as e:
            return error_response(e)
        except DatabaseError as e:
            return _commit_failed(e)

        order = _order_queryset().get(pk=order.pk)
        return Response({
            'success': True,
            'order': OrderSerializer(order).data,
        }, status=status.HTTP_201_CREATED)


class CreateCODOrderView(APIView):
    """
    POST /api/orders/ - cash on delivery order (pending until the farmer confirms)
    """
    permission_classes = [IsAuthenticated, IsBuyer]

    def post(self, request):
        serializer = CreateCODOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = OrderCommitEngine().commit(
                buyer=request.user,
                farmer_id=data.get('farmer_id'),
                items=data.get('items'),
                delivery=_delivery(data),
                payment_confirmation={'payment_method': PaymentMethod.COD},
                currency=data.get('currency'),
                initial_status=OrderStatus.PENDING,
            )
        except OrderError as e:
            return error_response(e)
        except DatabaseError as e:
            return _commit_failed(e)

        order = _order_queryset().get(pk=order.pk)
        return Response({
            'success': True,
            'order': OrderSerializer(order).data,
        }, status=status.HTTP_201_CREATED)


# =============================================================================
# STATUS UPDATES
# =============================================================================

class OrderStatusUpdateView(APIView):
    """
    Farmer moves an order through its lifecycle.

    PUT /api/orders/<id>/status/
    {"status": "processing"}

    Cancelling puts the ordered quantities back on the products.
    """
    permission_classes = [IsAuthenticated, IsFarmer]

    def put(self, request, pk):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data['status']

        try:
            order = update_order_status(pk, request.user, new_status)
        except OrderError as e:
            return error_response(e)

        order = _order_queryset().get(pk=order.pk)
        return Response({
            'success': True,
            'message': f"Order status updated to {order.status}",
            'order': OrderSerializer(order).data,
        })


class PaymentStatusUpdateView(APIView):
    """
    PUT /api/orders/<id>/payment-status/
    {"payment_status": "paid", "payment_method": "cod", "transaction_id": "..."}

    The order's buyer, its farmer or an admin. Buyers cannot mark their own
    orders paid or refunded. Never changes stock.
    """
    permission_classes = [IsAuthenticated]

    BUYER_FORBIDDEN = (PaymentStatus.PAID, PaymentStatus.REFUNDED)

    def put(self, request, pk):
        user = request.user
        order = Order.objects.filter(pk=pk).first()
        if order is None or not (user.is_marketplace_admin or order.is_participant(user)):
            return error_response(OrderNotFoundError())

        serializer = PaymentStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if not serializer.is_valid_status():
            return failure(
                f"Valid payment status is required. Allowed: {', '.join(PaymentStatus.values)}",
                'INVALID_PAYMENT_STATUS'
            )
        data = serializer.validated_data
        payment_status = data['payment_status']

        is_buyer_only = order.buyer_id == user.pk and not user.is_marketplace_admin
        if is_buyer_only and payment_status in self.BUYER_FORBIDDEN:
            return failure(
                'Buyers cannot mark orders as paid or refunded',
                'FORBIDDEN',
                status.HTTP_403_FORBIDDEN
            )

        try:
            PaymentService.set_status(
                order,
                payment_status,
                actor=user,
                payment_method=data.get('payment_method'),
                transaction_id=data.get('transaction_id'),
            )
        except (OrderError, PaymentError) as e:
            return error_response(e)

        order = _order_queryset().get(pk=order.pk)
        return Response({
            'success': True,
            'message': f"Payment status updated to {order.payment_status}",
            'order': OrderSerializer(order).data,
        })


# =============================================================================
# READ ENDPOINTS
# =============================================================================

class BuyerOrderListView(generics.ListAPIView):
    """
    GET /api/orders/my-orders/
    GET /api/orders/my-orders/?status=confirmed
    """
    permission_classes = [IsAuthenticated, IsBuyer]
    serializer_class = OrderSerializer

    def get_queryset(self):
        queryset = _order_queryset().filter(buyer=self.request.user)

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        return queryset.order_by('-created_at')


class FarmerOrderListView(generics.ListAPIView):
    """
    GET /api/orders/farmer/orders/?status=pending&payment_status=paid
    """
    permission_classes = [IsAuthenticated, IsFarmer]
    serializer_class = OrderSerializer

    def get_queryset(self):
        queryset = _order_queryset().filter(farmer=self.request.user)

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        payment_status = self.request.query_params.get('payment_status')
        if payment_status:
            queryset = queryset.filter(payment_status=payment_status)

        return queryset.order_by('-created_at')


class OrderDetailView(generics.RetrieveAPIView):
    """GET /api/orders/<id>/ - visible to the buyer, the farmer and admins"""
    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer

    def get_queryset(self):
        user = self.request.user
        queryset = _order_queryset()
        if user.is_marketplace_admin:
            return queryset
        if user.is_farmer:
            return queryset.filter(farmer=user)
        return queryset.filter(buyer=user)

    def retrieve(self, request, *args, **kwargs):
        order = self.get_queryset().filter(pk=kwargs['pk']).first()
        if order is None:
            return error_response(OrderNotFoundError())
        return Response({'success': True, 'order': self.get_serializer(order).data})


class AdminOrderListView(generics.ListAPIView):
    """
    GET /api/orders/admin/all/?status=&payment_status=&farmer_id=&buyer_id=&start_date=&end_date=
    """
    permission_classes = [IsAuthenticated, IsAdmin]
    serializer_class = OrderListSerializer
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = OrderFilter
    ordering_fields = ['created_at', 'total_amount']
    ordering = ['-created_at']

    def get_queryset(self):
        return Order.objects.select_related('buyer', 'farmer').prefetch_related('items')


class OrderStatisticsView(APIView):
    """GET /api/orders/statistics/ - scoped to the caller's role"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({'success': True, 'statistics': order_statistics(request.user)})
