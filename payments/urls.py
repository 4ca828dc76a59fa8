"""
Payment URL Routes

Endpoints for checkout payments, refunds and Paystack webhooks
"""

from django.urls import path
from .views import (
    CreatePaymentView,
    VerifyPaymentView,
    PaystackWebhookView,
    CODConfirmView,
    RefundView,
    PaymentDetailsView,
    UserPaymentsView,
    PaymentMethodsView,
    PaymentStatisticsView,
)

app_name = 'payments'

urlpatterns = [
    # Checkout
    path('create/', CreatePaymentView.as_view(), name='create'),
    path('verify/', VerifyPaymentView.as_view(), name='verify'),

    # Cash on delivery
    path('cod/confirm/', CODConfirmView.as_view(), name='cod-confirm'),

    # Admin
    path('refund/', RefundView.as_view(), name='refund'),
    path('stats/', PaymentStatisticsView.as_view(), name='stats'),

    # Read
    path('details/<uuid:order_id>/', PaymentDetailsView.as_view(), name='details'),
    path('user-payments/', UserPaymentsView.as_view(), name='user-payments'),
    path('methods/', PaymentMethodsView.as_view(), name='methods'),
]

# Webhook endpoints (no authentication, signature verified)
webhook_urlpatterns = [
    path('paystack/', PaystackWebhookView.as_view(), name='paystack-webhook'),
]
