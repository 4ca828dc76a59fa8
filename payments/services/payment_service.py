"""
Payment Service

Owns every write to Payment. The order's payment_status/payment_method/
transaction_id columns are a mirror and are rewritten here, in the same
transaction, whenever the linked Payment changes.

Entry points:
- create_checkout_payment: quote + pending Payment + gateway intent
- confirm_callback: signature-verified synchronous confirmation
- handle_webhook_event: signature-verified asynchronous confirmation
- set_status: manual payment status update for an order
- confirm_cod: farmer/admin marks a cash payment as received
- refund: bounded, idempotent refund

Payment status never changes inventory.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from orders.exceptions import OrderNotFoundError
from orders.models import Order
from orders.services.validator import OrderValidator
from orders.state_machine import validate_payment_transition
from payments.exceptions import (
    PaymentAmountMismatchError,
    PaymentError,
    PaymentNotFoundError,
    PaymentSignatureError,
    RefundError,
)
from payments.models import (
    GATEWAY_METHODS,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentTransaction,
)
from payments.services.gateway import PaymentGatewayError, PaystackGateway

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for payment lifecycle changes"""

    gateway = PaystackGateway

    # -------------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------------

    @classmethod
    def create_checkout_payment(
        cls,
        buyer,
        farmer_id,
        items,
        payment_method: str,
        currency: str = None,
        callback_url: str = None,
    ) -> Tuple[Payment, Dict[str, Any]]:
        """
        Quote the basket and open a payment for it.

        Read-only for the catalog: stock is only reserved by the commit
        engine, after this payment is confirmed.
        """
        if payment_method not in GATEWAY_METHODS:
            raise PaymentError(
                "Cash on delivery orders do not need a gateway payment",
                code='INVALID_PAYMENT_METHOD'
            )

        currency = (currency or settings.ORDER_CURRENCY).upper()
        validated = OrderValidator().validate(buyer, farmer_id, items)
        reference = cls.gateway.generate_reference()

        payment = Payment.objects.create(
            buyer=buyer,
            farmer=validated['farmer'],
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING,
            amount=validated['total_amount'],
            currency=currency,
            gateway='paystack',
            gateway_order_id=reference,
            quote=[
                {
                    'product_id': str(line['product_id']),
                    'quantity': str(line['quantity']),
                    'unit_price': str(line['unit_price']),
                    'total_price': str(line['total_price']),
                }
                for line in validated['items']
            ],
        )

        try:
            gateway_data = cls.gateway.initialize_transaction(
                amount=payment.amount,
                email=buyer.email,
                reference=reference,
                currency=currency,
                metadata={
                    'payment_id': str(payment.id),
                    'buyer_id': str(buyer.pk),
                    'farmer_id': str(validated['farmer'].pk),
                },
                callback_url=callback_url,
            )
        except PaymentGatewayError as e:
            payment.payment_status = PaymentStatus.FAILED
            payment.failure_reason = e.message
            payment.save(update_fields=['payment_status', 'failure_reason', 'updated_at'])
            logger.error(f"Gateway initialization failed for {reference}: {e.message}")
            raise

        payment.gateway_response = {'initialize': gateway_data}
        payment.save(update_fields=['gateway_response', 'updated_at'])

        PaymentTransaction.objects.create(
            payment=payment,
            transaction_type='authorize',
            status='pending',
            amount=payment.amount,
            currency=payment.currency,
            gateway_transaction_id=gateway_data.get('access_code') or '',
            gateway_response=gateway_data,
        )

        logger.info(
            f"Checkout payment {reference} opened: buyer={buyer.pk} "
            f"amount={payment.amount} {currency}"
        )
        return payment, gateway_data

    @classmethod
    def confirm_callback(
        cls,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
        buyer=None,
    ) -> Payment:
        """Verify the checkout callback signature, then mark the payment paid."""
        if not cls.gateway.verify_callback_signature(gateway_order_id, gateway_payment_id, signature):
            logger.warning(f"Rejected payment callback with invalid signature for {gateway_order_id}")
            raise PaymentSignatureError()

        if buyer is not None and not Payment.objects.filter(
            gateway_order_id=gateway_order_id, buyer=buyer
        ).exists():
            raise PaymentNotFoundError()

        payment, _ = cls.mark_paid(
            gateway_order_id,
            gateway_payment_id=gateway_payment_id,
            gateway_response={'callback': {'gateway_payment_id': gateway_payment_id}},
        )
        return payment

    # -------------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------------

    @classmethod
    def mark_paid(
        cls,
        reference: str,
        gateway_payment_id: str = '',
        gateway_response: dict = None,
        amount: Optional[Decimal] = None,
        confirmed_by=None,
    ) -> Tuple[Payment, bool]:
        """
        Mark a payment paid. Idempotent: a payment that is already paid, or
        paid and since refunded, is returned unchanged with created=False.
        """
        with transaction.atomic():
            payment = cls._lock_payment(reference)

            if payment.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
                logger.info(
                    f"Payment {reference} already {payment.payment_status}; "
                    f"ignoring duplicate confirmation"
                )
                return payment, False

            if amount is not None and amount != payment.amount:
                logger.error(
                    f"Amount mismatch for payment {reference}: "
                    f"expected {payment.amount}, gateway reported {amount}"
                )
                raise PaymentAmountMismatchError(
                    f"Paid amount {amount} does not match expected {payment.amount}"
                )

            validate_payment_transition(payment.payment_status, PaymentStatus.PAID)

            now = timezone.now()
            payment.payment_status = PaymentStatus.PAID
            payment.payment_date = now
            payment.failure_reason = ''
            if gateway_payment_id:
                payment.gateway_payment_id = str(gateway_payment_id)
            if confirmed_by is not None:
                payment.confirmed_by = confirmed_by
                payment.confirmed_at = now
            if gateway_response:
                payment.gateway_response = {**payment.gateway_response, **gateway_response}
            payment.save()

            PaymentTransaction.objects.create(
                payment=payment,
                transaction_type='payment',
                status='success',
                amount=payment.amount,
                currency=payment.currency,
                gateway_transaction_id=payment.gateway_payment_id,
                gateway_response=gateway_response or {},
                initiated_by=confirmed_by,
            )

            cls.sync_order(payment)

        logger.info(f"Payment {reference} marked paid ({payment.payment_method})")
        return payment, True

    @classmethod
    def mark_failed(cls, reference: str, reason: str = '', gateway_response: dict = None) -> Tuple[Payment, bool]:
        with transaction.atomic():
            payment = cls._lock_payment(reference)

            if payment.payment_status != PaymentStatus.PENDING:
                logger.info(
                    f"Payment {reference} is {payment.payment_status}; "
                    f"not marking failed"
                )
                return payment, False

            payment.payment_status = PaymentStatus.FAILED
            payment.failure_reason = reason or 'Payment failed'
            if gateway_response:
                payment.gateway_response = {**payment.gateway_response, **gateway_response}
            payment.save()

            PaymentTransaction.objects.create(
                payment=payment,
                transaction_type='payment',
                status='failed',
                amount=payment.amount,
                currency=payment.currency,
                gateway_response=gateway_response or {},
                error_message=payment.failure_reason,
            )

            cls.sync_order(payment)

        logger.info(f"Payment {reference} marked failed: {payment.failure_reason}")
        return payment, True

    @classmethod
    def set_status(
        cls,
        order: Order,
        payment_status: str,
        actor,
        payment_method: str = None,
        transaction_id: str = None,
    ) -> Order:
        """
        Manual payment status update for an order.

        The linked Payment is updated first and the order mirror is rewritten
        from it. Orders without a Payment record get one.
        """
        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=order.pk)
            payment = (
                Payment.objects.select_for_update()
                .filter(order=order)
                .order_by('-created_at')
                .first()
            )
            if payment is None:
                payment = Payment.objects.create(
                    order=order,
                    buyer_id=order.buyer_id,
                    farmer_id=order.farmer_id,
                    payment_method=payment_method or order.payment_method or PaymentMethod.COD,
                    payment_status=order.payment_status,
                    amount=order.total_amount,
                    currency=order.currency,
                    gateway='cash',
                    gateway_order_id=cls.gateway.generate_reference('MAN'),
                )

            changed = validate_payment_transition(payment.payment_status, payment_status)

            if payment_method:
                payment.payment_method = payment_method
            if transaction_id:
                payment.gateway_payment_id = transaction_id

            if changed:
                now = timezone.now()
                payment.payment_status = payment_status
                if payment_status == PaymentStatus.PAID:
                    payment.payment_date = now
                    payment.confirmed_by = actor
                    payment.confirmed_at = now
                elif payment_status == PaymentStatus.REFUNDED:
                    payment.refund_amount = payment.amount
                    payment.refund_date = now

            payment.save()
            cls.sync_order(payment, order=order)

        logger.info(
            f"Order {order.order_number} payment status -> {payment_status} by {actor.pk}"
        )
        return order

    @classmethod
    def confirm_cod(cls, order_id, actor) -> Payment:
        """Farmer (own orders) or admin records that cash was received."""
        order = Order.objects.filter(pk=order_id).first()
        if order is None or (not actor.is_marketplace_admin and order.farmer_id != actor.pk):
            raise OrderNotFoundError()

        payment = Payment.objects.filter(order=order, payment_method=PaymentMethod.COD).first()
        if payment is None:
            raise PaymentNotFoundError("No cash on delivery payment for this order")

        payment, _ = cls.mark_paid(payment.gateway_order_id, confirmed_by=actor)
        return payment

    @classmethod
    def sync_order(cls, payment: Payment, order: Order = None) -> None:
        """Rewrite the order's payment mirror from the payment."""
        order = order or payment.order
        if order is None:
            return
        order.payment_status = payment.payment_status
        order.payment_method = payment.payment_method
        order.transaction_id = payment.gateway_payment_id or payment.gateway_order_id
        order.save(update_fields=['payment_status', 'payment_method', 'transaction_id', 'updated_at'])

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    @classmethod
    def handle_webhook_event(cls, event: Dict[str, Any]) -> str:
        """
        Apply a verified gateway event. Returns a short outcome label.
        Unknown references are acknowledged so the gateway stops retrying.
        """
        event_type = event.get('event')
        data = event.get('data') or {}
        reference = data.get('reference')

        if event_type not in ('charge.success', 'charge.failed', 'refund.processed'):
            logger.info(f"Ignoring webhook event: {event_type}")
            return 'ignored'

        if event_type == 'refund.processed':
            logger.info(f"Refund processed at gateway for {data.get('transaction_reference') or reference}")
            return 'refund_logged'

        if not reference or not Payment.objects.filter(gateway_order_id=reference).exists():
            logger.warning(f"Webhook {event_type} for unknown payment reference: {reference}")
            return 'unknown_reference'

        if event_type == 'charge.success':
            _, changed = cls.mark_paid(
                reference,
                gateway_payment_id=str(data.get('id') or ''),
                gateway_response={'webhook': data},
                amount=cls.gateway.from_minor_units(data['amount']) if 'amount' in data else None,
            )
            return 'paid' if changed else 'already_processed'

        _, changed = cls.mark_failed(
            reference,
            reason=data.get('gateway_response') or 'Charge failed',
            gateway_response={'webhook': data},
        )
        return 'failed' if changed else 'already_processed'

    # -------------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------------

    @classmethod
    def refund(
        cls,
        order_id,
        amount: Decimal,
        reason: str,
        actor,
        idempotency_key: str = None,
        payment_id=None,
    ) -> Tuple[PaymentTransaction, bool]:
        """
        Refund part or all of a paid payment.

        The payment is found by payment_id when given, otherwise as the latest
        payment of order_id. payment_id reaches payments that never got an
        order, such as a paid checkout whose commit was rejected.

        amount may not exceed the captured amount minus earlier refunds. A
        repeated idempotency_key returns the first refund transaction with
        created=False and does not call the gateway again.
        """
        if payment_id is None and order_id is None:
            raise RefundError("order_id or payment_id is required", code='MISSING_FIELDS')

        if idempotency_key:
            existing = PaymentTransaction.objects.filter(
                idempotency_key=idempotency_key, transaction_type='refund'
            ).first()
            if existing is not None:
                logger.info(f"Refund with idempotency key {idempotency_key} already processed")
                return existing, False

        amount = Decimal(str(amount))
        failure = None

        with transaction.atomic():
            if payment_id is not None:
                payment = Payment.objects.select_for_update().filter(pk=payment_id).first()
                if payment is None:
                    raise PaymentNotFoundError()
            else:
                payment = (
                    Payment.objects.select_for_update()
                    .filter(order_id=order_id)
                    .order_by('-created_at')
                    .first()
                )
                if payment is None:
                    raise PaymentNotFoundError("Payment not found for this order")

            if payment.payment_status != PaymentStatus.PAID:
                raise RefundError("Only paid payments can be refunded", code='NOT_REFUNDABLE')
            if amount <= 0:
                raise RefundError("Refund amount must be greater than zero", code='INVALID_AMOUNT')
            if amount > payment.refundable_amount:
                raise RefundError(
                    "Refund amount exceeds available balance",
                    code='AMOUNT_EXCEEDS_BALANCE',
                    details={'available': str(payment.refundable_amount)}
                )

            gateway_data = {}
            try:
                if payment.is_gateway_payment:
                    gateway_data = cls.gateway.refund_transaction(
                        payment.gateway_order_id, amount=amount, reason=reason
                    )
            except PaymentGatewayError as e:
                failure = e
                refund_txn = PaymentTransaction.objects.create(
                    payment=payment,
                    transaction_type='refund',
                    status='failed',
                    amount=amount,
                    currency=payment.currency,
                    gateway_response=e.details,
                    error_code=e.code,
                    error_message=e.message,
                    reason=reason,
                    initiated_by=actor,
                )
            else:
                refund_txn = PaymentTransaction.objects.create(
                    payment=payment,
                    transaction_type='refund',
                    status='success',
                    amount=amount,
                    currency=payment.currency,
                    gateway_transaction_id=str(gateway_data.get('id') or ''),
                    gateway_response=gateway_data,
                    idempotency_key=idempotency_key or None,
                    reason=reason,
                    initiated_by=actor,
                )

                payment.refund_amount += amount
                payment.refund_reason = reason
                payment.refund_date = timezone.now()
                if payment.refund_amount == payment.amount:
                    validate_payment_transition(payment.payment_status, PaymentStatus.REFUNDED)
                    payment.payment_status = PaymentStatus.REFUNDED
                payment.save()
                cls.sync_order(payment)

        if failure is not None:
            logger.error(f"Gateway refund failed for payment {payment.gateway_order_id}: {failure.message}")
            raise RefundError(failure.message, code='GATEWAY_ERROR')

        logger.info(
            f"Refunded {amount} {payment.currency} on payment {payment.gateway_order_id} "
            f"(total refunded {payment.refund_amount}) by {actor.pk}"
        )
        return refund_txn, True

    # -------------------------------------------------------------------------

    @staticmethod
    def _lock_payment(reference: str) -> Payment:
        payment = (
            Payment.objects.select_for_update()
            .filter(gateway_order_id=reference)
            .first()
        )
        if payment is None:
            raise PaymentNotFoundError()
        return payment
