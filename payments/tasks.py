"""
Payment Celery Tasks

Background tasks for:
- Expiring checkout payments that were never confirmed
"""

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task
def expire_stale_payments():
    """
    Mark abandoned checkout payments as failed.

    A pending payment with no order that is older than
    PAYMENT_PENDING_TIMEOUT_MINUTES is treated as abandoned. Stock is never
    touched here: nothing was reserved for a payment without an order.

    Runs every 15 minutes via celery beat.
    """
    from .models import Payment, PaymentStatus
    from .services.payment_service import PaymentService

    cutoff = timezone.now() - timedelta(minutes=settings.PAYMENT_PENDING_TIMEOUT_MINUTES)

    references = list(
        Payment.objects.filter(
            payment_status=PaymentStatus.PENDING,
            order__isnull=True,
            created_at__lt=cutoff,
        ).values_list('gateway_order_id', flat=True)
    )

    expired = 0
    for reference in references:
        _, changed = PaymentService.mark_failed(reference, reason='Payment expired')
        if changed:
            expired += 1

    if expired:
        logger.info(f"Expired {expired} stale pending payment(s)")

    return {'expired': expired}
