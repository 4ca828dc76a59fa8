"""
Order Commit Engine

Turns a confirmed payment into an order. Everything between re-validation and
linking the payment happens in one transaction:

1. Re-validate the basket with the product rows locked (pk order)
2. Check the payment confirmation backing this order
3. Insert the Order
4. For each line: insert the OrderItem snapshot, then reserve stock with a
   guarded UPDATE (available_quantity >= quantity) and check the row count
5. Link the Payment and mirror its status on the order

Any exception rolls the whole unit back: no order, no items, no stock change.
Emails are queued with transaction.on_commit(robust=True), so they only go out
for orders that actually exist. A failing callback is logged and never turns a
committed order into an error response.
"""

import logging
from decimal import Decimal
from typing import Any, Dict

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from marketplace.models import Product
from orders.exceptions import InsufficientStockError, PaymentConfirmationError
from orders.models import Order, OrderItem, OrderStatus
from orders.services.notifications import OrderNotificationService
from orders.services.validator import OrderValidator, format_quantity
from payments.models import GATEWAY_METHODS, Payment, PaymentMethod, PaymentStatus
from payments.services.gateway import PaystackGateway

logger = logging.getLogger(__name__)


class OrderCommitEngine:
    """
    Usage:
        order = OrderCommitEngine().commit(
            buyer=request.user,
            farmer_id=data['farmer_id'],
            items=data['items'],
            delivery={'delivery_address': '...'},
            payment_confirmation={
                'payment_method': 'card',
                'payment_status': 'paid',
                'transaction_id': 'PAY-20260101-1A2B3C4D',
            },
        )
    """

    def commit(
        self,
        buyer,
        farmer_id,
        items,
        delivery: Dict[str, Any],
        payment_confirmation: Dict[str, Any],
        currency: str = None,
        initial_status: str = OrderStatus.CONFIRMED,
    ) -> Order:
        currency = currency.upper() if currency else None

        with transaction.atomic():
            validated = OrderValidator(lock=True).validate(buyer, farmer_id, items)
            farmer = validated['farmer']
            total_amount = validated['total_amount']

            payment = self._resolve_payment(
                buyer, farmer, validated, payment_confirmation, currency
            )

            now = timezone.now()
            order = Order.objects.create(
                buyer=buyer,
                farmer=farmer,
                total_amount=total_amount,
                currency=payment.currency,
                status=initial_status,
                confirmed_at=now if initial_status == OrderStatus.CONFIRMED else None,
                payment_status=payment.payment_status,
                payment_method=payment.payment_method,
                transaction_id=payment.gateway_payment_id or payment.gateway_order_id,
                delivery_address=delivery['delivery_address'],
                delivery_date=delivery.get('delivery_date'),
                special_instructions=delivery.get('special_instructions') or '',
            )

            for line in validated['items']:
                self._create_line(order, farmer, line)

            payment.order = order
            payment.save(update_fields=['order', 'updated_at'])

            order_id = order.pk
            transaction.on_commit(
                lambda: OrderNotificationService().send_order_placed(order_id),
                robust=True,
            )

        logger.info(
            f"Order {order.order_number} committed: buyer={buyer.pk} farmer={farmer.pk} "
            f"total={total_amount} {order.currency} status={order.status} "
            f"payment={payment.gateway_order_id}"
        )
        return order

    def _create_line(self, order, farmer, line):
        OrderItem.objects.create(
            order=order,
            product=line['product'],
            farmer=farmer,
            product_name=line['product_name'],
            unit_type=line['unit_type'],
            quantity=line['quantity'],
            unit_price=line['unit_price'],
        )

        if not Product.reserve_stock(line['product_id'], line['quantity']):
            available = Product.objects.filter(
                pk=line['product_id']
            ).values_list('available_quantity', flat=True).first()
            logger.warning(
                f"Stock reservation lost for product {line['product_id']} "
                f"(requested {line['quantity']}, available {available})"
            )
            raise InsufficientStockError(
                f"Insufficient quantity for {line['product_name']}. "
                f"Available: {format_quantity(available or 0)}",
                product_id=line['product_id'],
            )

    def _resolve_payment(self, buyer, farmer, validated, confirmation, currency) -> Payment:
        method = confirmation.get('payment_method')

        if method == PaymentMethod.COD:
            return Payment.objects.create(
                buyer=buyer,
                farmer=farmer,
                payment_method=PaymentMethod.COD,
                payment_status=PaymentStatus.PENDING,
                amount=validated['total_amount'],
                currency=currency or settings.ORDER_CURRENCY,
                gateway='cash',
                gateway_order_id=PaystackGateway.generate_reference('COD'),
                quote=self._quote_snapshot(validated),
            )

        if method not in GATEWAY_METHODS:
            raise PaymentConfirmationError(
                f"Unsupported payment method: {method}", code='INVALID_PAYMENT_METHOD'
            )

        if confirmation.get('payment_status') != PaymentStatus.PAID:
            raise PaymentConfirmationError("Payment has not been confirmed")

        transaction_id = confirmation.get('transaction_id')
        if not transaction_id:
            raise PaymentConfirmationError(
                "transaction_id is required for gateway payments", code='MISSING_TRANSACTION_ID'
            )

        payment = (
            Payment.objects.select_for_update()
            .filter(gateway_order_id=transaction_id, buyer=buyer)
            .first()
        )
        if payment is None:
            raise PaymentConfirmationError(
                "Payment not found for this transaction", code='PAYMENT_NOT_FOUND'
            )
        if payment.payment_status != PaymentStatus.PAID:
            raise PaymentConfirmationError("Payment has not been confirmed")
        if payment.order_id is not None:
            raise PaymentConfirmationError(
                "Payment has already been used for an order", code='PAYMENT_ALREADY_USED'
            )
        if payment.farmer_id != farmer.pk or (currency and payment.currency != currency):
            raise PaymentConfirmationError(
                "Payment does not match this order", code='PAYMENT_MISMATCH'
            )
        if payment.amount != validated['total_amount']:
            raise PaymentConfirmationError(
                f"Payment amount {payment.amount} does not match order total "
                f"{validated['total_amount']}",
                code='AMOUNT_MISMATCH'
            )
        # Payments opened without a checkout quote (manual/legacy) only match on total
        if payment.quote and self._quoted_basket(payment.quote) != self._validated_basket(validated):
            raise PaymentConfirmationError(
                "Payment was made for a different basket", code='BASKET_MISMATCH'
            )

        return payment

    @staticmethod
    def _quoted_basket(quote):
        return {
            str(line['product_id']): Decimal(str(line['quantity']))
            for line in quote
        }

    @staticmethod
    def _validated_basket(validated):
        return {
            str(line['product_id']): line['quantity']
            for line in validated['items']
        }

    @staticmethod
    def _quote_snapshot(validated):
        return [
            {
                'product_id': str(line['product_id']),
                'quantity': str(line['quantity']),
                'unit_price': str(line['unit_price']),
                'total_price': str(line['total_price']),
            }
            for line in validated['items']
        ]
