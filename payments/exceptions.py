"""
Payment domain errors, translated to JSON responses by the views.
"""


class PaymentError(Exception):
    """Base exception for payment errors"""
    status_code = 400

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or 'PAYMENT_ERROR'
        self.details = details or {}


class PaymentSignatureError(PaymentError):
    def __init__(self, message: str = "Invalid payment signature"):
        super().__init__(message, code='INVALID_SIGNATURE')


class PaymentNotFoundError(PaymentError):
    status_code = 404

    def __init__(self, message: str = "Payment not found"):
        super().__init__(message, code='PAYMENT_NOT_FOUND')


class PaymentAmountMismatchError(PaymentError):
    def __init__(self, message: str):
        super().__init__(message, code='AMOUNT_MISMATCH')


class RefundError(PaymentError):
    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message, code=code or 'REFUND_ERROR', details=details)
