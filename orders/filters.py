import django_filters

from .models import Order, OrderStatus
from payments.models import PaymentStatus


class OrderFilter(django_filters.FilterSet):
    """Admin order search: /api/orders/admin/all/?status=&farmer_id=&start_date="""
    status = django_filters.ChoiceFilter(choices=OrderStatus.choices)
    payment_status = django_filters.ChoiceFilter(choices=PaymentStatus.choices)
    farmer_id = django_filters.UUIDFilter(field_name='farmer_id')
    buyer_id = django_filters.UUIDFilter(field_name='buyer_id')
    start_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    end_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = Order
        fields = ['status', 'payment_status', 'farmer_id', 'buyer_id', 'start_date', 'end_date']
