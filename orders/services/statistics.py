"""
Order statistics, scoped by role.

Buyers see their own orders, farmers the orders placed with them, admins
everything. Revenue excludes cancelled orders.
"""

from decimal import Decimal

from dateutil.relativedelta import relativedelta
from django.db.models import Count, Sum
from django.db.models.functions import Coalesce, TruncMonth
from django.utils import timezone

from orders.models import Order, OrderStatus


def scoped_orders(user):
    if user.is_marketplace_admin:
        return Order.objects.all()
    if user.is_farmer:
        return Order.objects.filter(farmer=user)
    return Order.objects.filter(buyer=user)


def order_statistics(user, months: int = 6):
    orders = scoped_orders(user)

    counts = {row['status']: row['count'] for row in orders.values('status').annotate(count=Count('id'))}
    by_status = {value: counts.get(value, 0) for value in OrderStatus.values}

    revenue_orders = orders.exclude(status=OrderStatus.CANCELLED)
    total_revenue = revenue_orders.aggregate(
        total=Coalesce(Sum('total_amount'), Decimal('0.00'))
    )['total']

    start = (timezone.now() - relativedelta(months=months - 1)).replace(
        day=1, hour=0, minute=0, second=0, microsecond=0
    )
    monthly = revenue_orders.filter(created_at__gte=start).annotate(
        month=TruncMonth('created_at')
    ).values('month').annotate(
        revenue=Coalesce(Sum('total_amount'), Decimal('0.00')),
        count=Count('id')
    ).order_by('month')

    return {
        'total_orders': sum(by_status.values()),
        'by_status': by_status,
        'total_revenue': total_revenue,
        'revenue_by_month': [
            {
                'month': row['month'].strftime('%Y-%m'),
                'revenue': row['revenue'],
                'orders': row['count'],
            }
            for row in monthly
        ],
    }
