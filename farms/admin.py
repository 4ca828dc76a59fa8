from django.contrib import admin

from .models import Farm


@admin.register(Farm)
class FarmAdmin(admin.ModelAdmin):
    list_display = ('farm_name', 'owner', 'verification_status', 'is_active', 'verified_at', 'created_at')
    list_filter = ('verification_status', 'is_active')
    search_fields = ('farm_name', 'owner__username', 'owner__email')
    readonly_fields = ('verified_by', 'verified_at', 'created_at', 'updated_at')
    actions = ['approve_farms']

    @admin.action(description='Approve selected farms')
    def approve_farms(self, request, queryset):
        for farm in queryset:
            farm.approve(request.user)
        self.message_user(request, f"{queryset.count()} farm(s) approved.")
