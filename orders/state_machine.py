"""
Status transition tables for orders and payments.

Every allowed move is listed; anything missing is rejected. A same-state
update is a no-op. Payment status never drives inventory.
"""

from typing import Dict, List

from .exceptions import StatusTransitionError


ORDER_STATUS_TRANSITIONS = {
    'pending': ['confirmed', 'cancelled'],
    'confirmed': ['processing', 'cancelled'],
    'processing': ['shipped', 'cancelled'],
    'shipped': ['delivered', 'cancelled'],
    'delivered': [],  # Terminal state
    'cancelled': [],  # Terminal state
}

PAYMENT_STATUS_TRANSITIONS = {
    'pending': ['paid', 'failed'],
    'failed': ['pending', 'paid'],  # Buyer retried at the gateway
    'paid': ['refunded'],
    'refunded': [],  # Terminal state
}


def validate_status_transition(current_status: str, new_status: str,
                               transitions: Dict[str, List[str]],
                               resource_type: str = 'order') -> bool:
    """
    Validate that a status transition is allowed.

    Returns:
        True if the status changes, False for a same-state update

    Raises:
        StatusTransitionError if transition is invalid
    """
    if new_status not in transitions:
        raise StatusTransitionError(
            f"Invalid {resource_type} status: {new_status}. "
            f"Allowed: {', '.join(transitions)}",
            code='INVALID_STATUS'
        )

    if current_status == new_status:
        return False

    if current_status == 'delivered' and new_status == 'cancelled':
        raise StatusTransitionError("Cannot cancel a delivered order")

    valid_transitions = transitions.get(current_status, [])
    if new_status not in valid_transitions:
        raise StatusTransitionError(
            f"Invalid {resource_type} status transition: {current_status} -> {new_status}. "
            f"Valid transitions: {valid_transitions}"
        )

    return True


def validate_order_transition(current_status: str, new_status: str) -> bool:
    return validate_status_transition(current_status, new_status, ORDER_STATUS_TRANSITIONS, 'order')


def validate_payment_transition(current_status: str, new_status: str) -> bool:
    return validate_status_transition(current_status, new_status, PAYMENT_STATUS_TRANSITIONS, 'payment')
