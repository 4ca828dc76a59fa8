"""
Order lifecycle: farmer status updates and cancellation.

Cancelling puts every item's quantity back onto its product. It is the inverse
of the reservation done at commit and runs at most once per order, guarded by
Order.stock_restored_at under the order row lock.
"""

import logging

from django.db import transaction
from django.utils import timezone

from marketplace.models import Product
from orders.exceptions import OrderNotFoundError
from orders.models import Order, OrderStatus
from orders.services.notifications import OrderNotificationService
from orders.state_machine import validate_order_transition

logger = logging.getLogger(__name__)


def update_order_status(order_id, farmer, new_status: str) -> Order:
    """
    Move a farmer's order to `new_status`.

    Raises:
        OrderNotFoundError: order missing or owned by another farmer
        StatusTransitionError: transition not in the table
    """
    with transaction.atomic():
        order = (
            Order.objects.select_for_update()
            .filter(pk=order_id, farmer=farmer)
            .first()
        )
        if order is None:
            raise OrderNotFoundError()

        previous_status = order.status
        if not validate_order_transition(previous_status, new_status):
            return order

        now = timezone.now()
        order.status = new_status
        update_fields = ['status', 'updated_at']

        if new_status == OrderStatus.CONFIRMED:
            order.confirmed_at = now
            update_fields.append('confirmed_at')
        elif new_status == OrderStatus.DELIVERED:
            order.delivered_at = now
            update_fields.append('delivered_at')
        elif new_status == OrderStatus.CANCELLED:
            order.cancelled_at = now
            update_fields.append('cancelled_at')
            if restore_order_stock(order):
                update_fields.append('stock_restored_at')

        order.save(update_fields=update_fields)

        order_pk = order.pk
        transaction.on_commit(
            lambda: OrderNotificationService().send_status_update(order_pk),
            robust=True,
        )

    logger.info(
        f"Order {order.order_number} status {previous_status} -> {new_status} "
        f"by farmer {farmer.pk}"
    )
    return order


def restore_order_stock(order: Order) -> bool:
    """
    Add each item's quantity back to its product.

    Must run inside the transaction holding the order row lock. Returns False
    if the stock for this order was already restored.
    """
    if order.stock_restored_at is not None:
        logger.warning(f"Stock for order {order.order_number} already restored; skipping")
        return False

    items = list(order.items.all())

    # Lock products in pk order, same as the commit path
    product_ids = sorted({item.product_id for item in items})
    list(
        Product.objects.select_for_update()
        .filter(pk__in=product_ids)
        .order_by('id')
    )

    for item in items:
        Product.restore_stock(item.product_id, item.quantity)
        logger.info(
            f"Restored {item.quantity} of product {item.product_id} "
            f"for cancelled order {order.order_number}"
        )

    order.stock_restored_at = timezone.now()
    return True
