from django.contrib import admin

from .models import Product, ProductCategory


@admin.register(ProductCategory)
class ProductCategoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'is_active')
    prepopulated_fields = {'slug': ('name',)}


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        'name', 'farm', 'farmer', 'price_per_unit', 'unit_type',
        'available_quantity', 'min_order_quantity', 'is_listed', 'is_available'
    )
    list_filter = ('is_available', 'is_listed', 'unit_type', 'category')
    search_fields = ('name', 'farm__farm_name', 'farmer__username')
    readonly_fields = ('is_available', 'created_at', 'updated_at')
