"""
Order URL Routes
"""

from django.urls import path
from .views import (
    CreateCODOrderView,
    ValidateOrderView,
    CreateOrderAfterPaymentView,
    OrderStatusUpdateView,
    PaymentStatusUpdateView,
    BuyerOrderListView,
    FarmerOrderListView,
    OrderDetailView,
    AdminOrderListView,
    OrderStatisticsView,
)

app_name = 'orders'

urlpatterns = [
    # Checkout
    path('', CreateCODOrderView.as_view(), name='create'),
    path('validate/', ValidateOrderView.as_view(), name='validate'),
    path('create-after-payment/', CreateOrderAfterPaymentView.as_view(), name='create-after-payment'),

    # Listings
    path('my-orders/', BuyerOrderListView.as_view(), name='my-orders'),
    path('farmer/orders/', FarmerOrderListView.as_view(), name='farmer-orders'),
    path('admin/all/', AdminOrderListView.as_view(), name='admin-all'),
    path('statistics/', OrderStatisticsView.as_view(), name='statistics'),

    # Single order
    path('<uuid:pk>/', OrderDetailView.as_view(), name='detail'),
    path('<uuid:pk>/status/', OrderStatusUpdateView.as_view(), name='status'),
    path('<uuid:pk>/payment-status/', PaymentStatusUpdateView.as_view(), name='payment-status'),
]
