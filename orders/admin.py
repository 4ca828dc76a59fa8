from django.contrib import admin

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    fields = ('product', 'product_name', 'unit_type', 'quantity', 'unit_price', 'total_price')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('order_number', 'buyer', 'farmer', 'total_amount', 'currency', 'status', 'payment_status', 'created_at')
    list_filter = ('status', 'payment_status', 'created_at')
    search_fields = ('order_number', 'buyer__email', 'farmer__email', 'transaction_id')
    # Read-only: status changes go through the API
    readonly_fields = (
        'order_number', 'buyer', 'farmer', 'total_amount', 'currency',
        'status', 'payment_status', 'payment_method', 'transaction_id',
        'created_at', 'updated_at', 'confirmed_at', 'delivered_at', 'cancelled_at', 'stock_restored_at'
    )
    inlines = [OrderItemInline]
