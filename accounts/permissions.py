from rest_framework import permissions

from .sessions import ResolvedSession


class IsAdminRole(permissions.BasePermission):
    """
    Allow access only to sessions that were opened by an admin identity.
    """

    message = "Admin only"

    def has_permission(self, request, view):
        session = request.auth
        return isinstance(session, ResolvedSession) and session.role == "admin"
