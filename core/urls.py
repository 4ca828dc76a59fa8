"""
URL configuration for core project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path, include
from django.views.generic import RedirectView

# Import payment URL patterns
from payments.urls import urlpatterns as payment_urls
from payments.urls import webhook_urlpatterns as payment_webhook_urls

urlpatterns = [
    path('', RedirectView.as_view(url='/admin/', permanent=False)),
    path('admin/', admin.site.urls),
    path('api/auth/', include('accounts.urls')),
    path('api/orders/', include('orders.urls')),  # Checkout, fulfilment, order history
    path('api/payments/', include((payment_urls, 'payments'))),  # Gateway payments, COD, refunds
    path('api/payments/webhooks/', include((payment_webhook_urls, 'payment_webhooks'))),  # Paystack webhooks
]
