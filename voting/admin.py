from django.contrib import admin

from .models import VoteRecord


class VoteRecordAdmin(admin.ModelAdmin):
    """
    Read-only view of the ledger; records are written only by the vote transaction.
    """
    list_display = ('id', 'identity', 'candidate', 'voted_at')
    list_filter = ('candidate',)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def has_module_permission(self, request):
        return request.user.is_staff or request.user.is_superuser

    def has_view_permission(self, request, obj=None):
        return request.user.is_staff or request.user.is_superuser


admin.site.register(VoteRecord, VoteRecordAdmin)
