"""
Order domain errors.

Each carries a user-facing message and a stable code; views turn them into
{'success': False, 'message': ..., 'code': ...} responses.
"""


class OrderError(Exception):
    """Base exception for order placement errors"""
    status_code = 400

    def __init__(self, message: str, code: str = None, field: str = None):
        super().__init__(message)
        self.message = message
        self.code = code or 'ORDER_ERROR'
        self.field = field


class OrderValidationError(OrderError):
    """Input or business rule violation found by the validator."""


class InsufficientStockError(OrderValidationError):
    """A guarded stock decrement matched no row."""

    def __init__(self, message: str, product_id=None):
        super().__init__(message, code='INSUFFICIENT_QUANTITY', field='items')
        self.product_id = product_id


class PaymentConfirmationError(OrderError):
    """The payment backing a commit is missing, unverified or already used."""

    def __init__(self, message: str, code: str = None):
        super().__init__(message, code=code or 'PAYMENT_NOT_CONFIRMED', field='transaction_id')


class StatusTransitionError(OrderError):
    """Raised when an invalid status transition is attempted."""

    def __init__(self, message: str, code: str = None):
        super().__init__(message, code=code or 'INVALID_TRANSITION', field='status')


class OrderNotFoundError(OrderError):
    """Order missing or not visible to the caller."""
    status_code = 404

    def __init__(self, message: str = "Order not found or access denied"):
        super().__init__(message, code='ORDER_NOT_FOUND')
