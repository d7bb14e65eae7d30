from django.contrib import admin
from .models import User
import logging

logger = logging.getLogger('accounts')

class UserAdmin(admin.ModelAdmin):
    list_display = ('student_id', 'name', 'is_admin', 'has_voted')
    list_filter = ('is_admin', 'has_voted')
    search_fields = ('student_id', 'name')
    # the vote flag is owned by the vote transaction
    readonly_fields = ('has_voted', 'password', 'last_login', 'date_joined')
    exclude = ('groups', 'user_permissions')

    def has_add_permission(self, request):
        # identities are created through registration or create_admin
        return False

    def has_change_permission(self, request, obj = None):
        return request.user.is_superuser
    
    def has_delete_permission(self, request, obj = None):
        return False
    
    def has_module_permission(self, request):
        return request.user.is_superuser or request.user.is_staff

    def has_view_permission(self, request, obj = None):
        return request.user.is_superuser or request.user.is_staff
    
    def save_model(self, request, obj, form, change):
        if change:
            logger.info(f'User updated by admin: {request.user.student_id} - {obj.student_id}')
        else:
            logger.info(f"User created by admin: {request.user.student_id}- {obj.student_id}")
        super().save_model(request, obj, form, change)

admin.site.register(User, UserAdmin)
