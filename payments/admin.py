from django.contrib import admin

from .models import Payment, PaymentTransaction


class PaymentTransactionInline(admin.TabularInline):
    model = PaymentTransaction
    extra = 0
    can_delete = False
    fields = ('transaction_type', 'status', 'amount', 'currency', 'gateway_transaction_id', 'error_message', 'created_at')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('gateway_order_id', 'buyer', 'farmer', 'payment_method', 'payment_status', 'amount', 'refund_amount', 'created_at')
    list_filter = ('payment_status', 'payment_method', 'gateway', 'created_at')
    search_fields = ('gateway_order_id', 'gateway_payment_id', 'buyer__email', 'farmer__email', 'order__order_number')
    readonly_fields = (
        'order', 'buyer', 'farmer', 'amount', 'currency', 'quote',
        'gateway_order_id', 'gateway_payment_id', 'gateway_response',
        'payment_status', 'refund_amount', 'payment_date', 'confirmed_by', 'confirmed_at',
        'created_at', 'updated_at'
    )
    inlines = [PaymentTransactionInline]


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ('payment', 'transaction_type', 'status', 'amount', 'currency', 'created_at')
    list_filter = ('transaction_type', 'status')
    search_fields = ('payment__gateway_order_id', 'gateway_transaction_id', 'idempotency_key')
    readonly_fields = [field.name for field in PaymentTransaction._meta.fields]
