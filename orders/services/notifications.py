"""
Order Notification Service

Best-effort emails around the order lifecycle:
- Buyer order confirmation
- Farmer new-order notification
- Buyer status updates

Messages are queued on Celery (core.tasks.send_email_async). Failures are
logged and never raised; an order must not fail because an email did.
"""

from django.conf import settings
import logging

from core.tasks import send_email_async

logger = logging.getLogger(__name__)


class OrderNotificationService:
    """Service for sending order-related notifications"""

    def __init__(self):
        self.frontend_url = getattr(settings, 'FRONTEND_URL', '')

    def send_order_placed(self, order_id):
        """Notify buyer and farmer about a freshly committed order."""
        from orders.models import Order

        try:
            order = (
                Order.objects.select_related('buyer', 'farmer')
                .prefetch_related('items')
                .get(pk=order_id)
            )
        except Order.DoesNotExist:
            logger.error(f"Cannot send order notifications: order {order_id} not found")
            return False

        sent_buyer = self._send_buyer_confirmation(order)
        sent_farmer = self._send_farmer_notification(order)
        return sent_buyer and sent_farmer

    def send_status_update(self, order_id):
        from orders.models import Order

        try:
            order = Order.objects.select_related('buyer').get(pk=order_id)
        except Order.DoesNotExist:
            logger.error(f"Cannot send status update: order {order_id} not found")
            return False

        subject = f"Order {order.order_number} is now {order.get_status_display()}"
        message = f"""
Dear {order.buyer.get_full_name()},

The status of your order {order.order_number} has been updated.

New status: {order.get_status_display()}
Order total: {order.currency} {order.total_amount}

Track your order: {self.frontend_url}/orders/{order.id}

Thank you for buying from local farms.
        """.strip()
        return self._send(subject, message, order.buyer.email, order)

    # -------------------------------------------------------------------------

    def _send_buyer_confirmation(self, order):
        lines = "\n".join(
            f"- {item.product_name}: {item.quantity} {item.unit_type} x "
            f"{order.currency} {item.unit_price} = {order.currency} {item.total_price}"
            for item in order.items.all()
        )
        subject = f"Order Confirmation - {order.order_number}"
        message = f"""
Dear {order.buyer.get_full_name()},

Thank you for your order!

Order Number: {order.order_number}
Status: {order.get_status_display()}
Payment: {order.get_payment_status_display()} ({order.payment_method})

Items:
{lines}

Total: {order.currency} {order.total_amount}

Delivery address:
{order.delivery_address}

You will receive updates as the farmer processes your order.
        """.strip()
        return self._send(subject, message, order.buyer.email, order)

    def _send_farmer_notification(self, order):
        lines = "\n".join(
            f"- {item.product_name}: {item.quantity} {item.unit_type}"
            for item in order.items.all()
        )
        subject = f"New Order Received - {order.order_number}"
        message = f"""
Dear {order.farmer.get_full_name()},

You have received a new order from {order.buyer.get_full_name()}.

Order Number: {order.order_number}
Total: {order.currency} {order.total_amount}
Payment: {order.get_payment_status_display()}

Items:
{lines}

Deliver to:
{order.delivery_address}
{f"Requested delivery date: {order.delivery_date}" if order.delivery_date else ""}
{f"Instructions: {order.special_instructions}" if order.special_instructions else ""}

Manage this order: {self.frontend_url}/farmer/orders/{order.id}
        """.strip()
        return self._send(subject, message, order.farmer.email, order)

    def _send(self, subject, message, recipient, order):
        if not recipient:
            logger.warning(f"No email address for notification on order {order.order_number}")
            return False
        try:
            send_email_async.delay(subject, message, [recipient])
            return True
        except Exception as e:
            logger.error(f"Failed to queue email for order {order.order_number}: {e}")
            return False
