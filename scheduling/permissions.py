"""
Role based permission classes for the scheduling API.
"""
from rest_framework.permissions import BasePermission

from scheduling.actors import Admin, SubAdmin, Staff, actor_for_user


class IsAdmin(BasePermission):
    """Only hospital administrators."""
    def has_permission(self, request, view) -> bool:
        return isinstance(actor_for_user(getattr(request, "user", None)), Admin)


class IsAdminOrSubAdmin(BasePermission):
    def has_permission(self, request, view) -> bool:
        return isinstance(actor_for_user(getattr(request, "user", None)), (Admin, SubAdmin))


class IsStaffRole(BasePermission):
    """Administrators, sub-admins and department staff."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return isinstance(actor_for_user(getattr(request, "user", None)), (Admin, SubAdmin, Staff))
