"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission

from .models import CREW_ROLES, Role


class IsDispatcherRole(BasePermission):
    """Allow access only to dispatchers (and superusers)."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):
            return False
        return bool(user.is_superuser or getattr(user, "role", None) == Role.DISPATCHER)


class IsCrewRole(BasePermission):
    """Allow access only to physicians and nurses."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in CREW_ROLES)
