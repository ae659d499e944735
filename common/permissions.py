from rest_framework.permissions import BasePermission


class IsStoreAdmin(BasePermission):
    """Allows users whose role is admin, plus staff and superusers."""

    message = "Administrator access required."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, "is_admin", False))
