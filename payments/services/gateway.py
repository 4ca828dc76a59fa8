"""
Paystack Payment Gateway

Handles the Paystack API interactions checkout relies on:
- Transaction initialization (returns the hosted checkout URL)
- Transaction verification
- Refunds
- Signature verification for the checkout callback and for webhooks

Amounts cross this boundary in minor units (paise, pesewas, kobo, cents).
Nothing here touches the database; PaymentService decides what a gateway
answer means for a Payment.

Documentation: https://paystack.com/docs/api/
"""

import hashlib
import hmac
import logging
import secrets
import requests
from decimal import Decimal
from typing import Any, Dict
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Base exception for payment gateway errors"""
    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or 'GATEWAY_ERROR'
        self.details = details or {}


class PaystackGateway:
    """
    Paystack Payment Gateway Adapter

    Usage:
        from payments.services.gateway import PaystackGateway

        result = PaystackGateway.initialize_transaction(
            amount=Decimal('30.00'),
            email='buyer@example.com',
            reference='PAY-20260105-A3B4C5D6',
            currency='INR',
        )
        result['authorization_url']

        verified = PaystackGateway.verify_transaction(reference)
    """

    # Settings are read per call so overrides apply without re-import

    @classmethod
    def _base_url(cls) -> str:
        return settings.PAYSTACK_BASE_URL.rstrip('/')

    @classmethod
    def _secret_key(cls) -> str:
        return settings.PAYSTACK_SECRET_KEY

    @classmethod
    def _get_headers(cls) -> Dict[str, str]:
        """Get authorization headers for Paystack API"""
        return {
            'Authorization': f'Bearer {cls._secret_key()}',
            'Content-Type': 'application/json',
        }

    @classmethod
    def _make_request(
        cls,
        method: str,
        endpoint: str,
        data: dict = None
    ) -> Dict[str, Any]:
        """
        Make HTTP request to Paystack API

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (e.g., /transaction/initialize)
            data: Request payload

        Returns:
            Parsed JSON response

        Raises:
            PaymentGatewayError: On API errors
        """
        url = f"{cls._base_url()}{endpoint}"

        try:
            response = requests.request(
                method=method,
                url=url,
                headers=cls._get_headers(),
                json=data,
                timeout=settings.PAYSTACK_TIMEOUT_SECONDS
            )
        except requests.exceptions.Timeout:
            logger.error(f"Paystack API timeout: {endpoint}")
            raise PaymentGatewayError(
                message="Payment gateway timeout. Please try again.",
                code='TIMEOUT'
            )
        except requests.exceptions.ConnectionError:
            logger.error(f"Paystack API connection error: {endpoint}")
            raise PaymentGatewayError(
                message="Unable to connect to payment gateway. Please try again.",
                code='CONNECTION_ERROR'
            )
        except requests.exceptions.RequestException as e:
            logger.exception(f"Unexpected Paystack error: {e}")
            raise PaymentGatewayError(
                message="An unexpected error occurred. Please try again.",
                code='UNEXPECTED_ERROR',
                details={'error': str(e)}
            )

        try:
            result = response.json()
        except ValueError:
            logger.error(f"Paystack returned non-JSON response for {endpoint} ({response.status_code})")
            raise PaymentGatewayError(
                message="Invalid response from payment gateway.",
                code='INVALID_RESPONSE',
                details={'status_code': response.status_code}
            )

        if not response.ok or not result.get('status'):
            error_message = result.get('message', 'Unknown Paystack error')
            logger.error(f"Paystack API error: {error_message}", extra={
                'endpoint': endpoint,
                'status_code': response.status_code,
            })
            raise PaymentGatewayError(
                message=error_message,
                code='API_ERROR',
                details={'response': result, 'status_code': response.status_code}
            )

        return result

    @classmethod
    def initialize_transaction(
        cls,
        amount: Decimal,
        email: str,
        reference: str,
        currency: str,
        metadata: dict = None,
        callback_url: str = None
    ) -> Dict[str, Any]:
        """
        Create the gateway-side payment intent for a checkout.

        Returns:
            Dict with authorization_url, access_code, reference
        """
        payload = {
            'amount': cls.to_minor_units(amount),
            'email': email,
            'reference': reference,
            'currency': currency,
            'metadata': metadata or {},
        }
        callback_url = callback_url or settings.PAYSTACK_CALLBACK_URL
        if callback_url:
            payload['callback_url'] = callback_url

        logger.info(f"Initializing Paystack transaction {reference} for {currency} {amount}")

        result = cls._make_request('POST', '/transaction/initialize', payload)
        data = result['data']

        return {
            'authorization_url': data.get('authorization_url'),
            'access_code': data.get('access_code'),
            'reference': data.get('reference', reference),
        }

    @classmethod
    def verify_transaction(cls, reference: str) -> Dict[str, Any]:
        """
        Verify a transaction by reference

        Returns:
            Dict with transaction details and status
        """
        logger.info(f"Verifying transaction: {reference}")

        result = cls._make_request('GET', f'/transaction/verify/{reference}')
        data = result['data']

        return {
            'status': data.get('status'),  # success, failed, pending, abandoned
            'reference': data.get('reference'),
            'id': data.get('id'),
            'amount': cls.from_minor_units(data.get('amount', 0)),
            'currency': data.get('currency'),
            'channel': data.get('channel'),
            'gateway_response': data.get('gateway_response'),
            'paid_at': data.get('paid_at'),
            'raw': data,
        }

    @classmethod
    def refund_transaction(
        cls,
        transaction_reference: str,
        amount: Decimal = None,
        reason: str = None
    ) -> Dict[str, Any]:
        """
        Initiate a refund for a transaction

        Args:
            transaction_reference: Original transaction reference
            amount: Amount to refund in major units (None = full refund)
            reason: Reason for refund
        """
        payload = {'transaction': transaction_reference}

        if amount:
            payload['amount'] = cls.to_minor_units(amount)
        if reason:
            payload['merchant_note'] = reason

        logger.info(f"Initiating refund for: {transaction_reference}")

        result = cls._make_request('POST', '/refund', payload)
        return result['data']

    @classmethod
    def verify_callback_signature(
        cls,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str
    ) -> bool:
        """
        Verify the signature the checkout page hands back after payment.

        The signature is HMAC-SHA256 over "{gateway_order_id}|{gateway_payment_id}".
        """
        secret = settings.PAYMENT_CALLBACK_SECRET or cls._secret_key()
        if not secret:
            logger.warning("PAYMENT_CALLBACK_SECRET not configured!")
            return False
        if not (gateway_order_id and gateway_payment_id and signature):
            return False

        expected_signature = cls.sign_callback(gateway_order_id, gateway_payment_id, secret)
        return hmac.compare_digest(expected_signature, str(signature))

    @classmethod
    def sign_callback(cls, gateway_order_id: str, gateway_payment_id: str, secret: str = None) -> str:
        secret = secret or settings.PAYMENT_CALLBACK_SECRET or cls._secret_key()
        body = f"{gateway_order_id}|{gateway_payment_id}"
        return hmac.new(
            secret.encode('utf-8'),
            body.encode('utf-8'),
            hashlib.sha256
        ).hexdigest()

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str
    ) -> bool:
        """
        Verify Paystack webhook signature

        Args:
            payload: Raw request body (bytes)
            signature: X-Paystack-Signature header value

        Returns:
            True if signature is valid
        """
        secret = settings.PAYSTACK_WEBHOOK_SECRET or cls._secret_key()
        if not secret:
            logger.warning("PAYSTACK_WEBHOOK_SECRET not configured!")
            return False
        if not signature:
            return False

        expected_signature = hmac.new(
            secret.encode('utf-8'),
            payload,
            hashlib.sha512
        ).hexdigest()

        return hmac.compare_digest(expected_signature, signature)

    @classmethod
    def generate_reference(cls, prefix: str = None) -> str:
        """
        Generate a unique payment reference

        Format: {PREFIX}-{YYYYMMDD}-{RANDOM}
        Example: PAY-20260105-A3B4C5D6E7F8
        """
        prefix = prefix or settings.PAYMENT_REFERENCE_PREFIX
        date_str = timezone.now().strftime('%Y%m%d')
        random_part = secrets.token_hex(6).upper()
        return f"{prefix}-{date_str}-{random_part}"

    @classmethod
    def to_minor_units(cls, amount: Decimal) -> int:
        """Convert a major-unit amount to the gateway's smallest unit."""
        return int((Decimal(str(amount)) * 100).to_integral_value())

    @classmethod
    def from_minor_units(cls, amount: int) -> Decimal:
        return (Decimal(amount or 0) / 100).quantize(Decimal('0.01'))
