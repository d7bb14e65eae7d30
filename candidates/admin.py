import logging

from django.contrib import admin

from .models import Candidate

logger = logging.getLogger("candidates")


class CandidateAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "vote_count")
    # tallies only change through the vote transaction
    readonly_fields = ("vote_count", "created_at")

    def has_module_permission(self, request):
        return request.user.is_staff or request.user.is_superuser

    def has_view_permission(self, request, obj=None):
        return request.user.is_staff or request.user.is_superuser

    def has_change_permission(self, request, obj=None):
        return request.user.is_superuser

    def has_delete_permission(self, request, obj=None):
        # ballots already cast reference the candidate
        return False

    def save_model(self, request, obj, form, change):
        if change:
            logger.info(
                f"Candidate updated by admin: {request.user.student_id} - {obj.id}"
            )
        else:
            logger.info(
                f"Candidate added by admin : {request.user.student_id} - {obj.id}"
            )
        super().save_model(request, obj, form, change)


admin.site.register(Candidate, CandidateAdmin)
