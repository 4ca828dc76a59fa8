"""
Core Celery tasks for the AgriMarket backend.

These are background tasks that should NOT block API requests.
Order and payment emails are queued here after the database commit.
"""
from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def send_email_async(self, subject: str, message: str, recipient_list: list, html_message: str = None):
    """
    Send email asynchronously via Celery.

    Usage:
        from core.tasks import send_email_async
        send_email_async.delay(
            'Subject',
            'Plain text message',
            ['user@example.com'],
        )
    """
    try:
        from django.core.mail import send_mail
        from django.conf import settings

        result = send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=recipient_list,
            html_message=html_message,
            fail_silently=False,
        )
        logger.info(f"Email sent to {recipient_list}: {result}")
        return result
    except Exception as exc:
        logger.error(f"Email sending failed: {exc}")
        # Retry with exponential backoff
        raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))
