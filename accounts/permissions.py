"""
Custom permissions for role-based access
"""
from rest_framework import permissions


def _has_role(request, *roles):
    return bool(
        request.user and
        request.user.is_authenticated and
        request.user.role in roles
    )


class IsAdmin(permissions.BasePermission):
    """Permission check for school admin role (manual balance adjustments)"""

    def has_permission(self, request, view):
        return _has_role(request, 'admin')


class IsStaffMember(permissions.BasePermission):
    """Admin or teacher: may manage lessons and payments"""

    def has_permission(self, request, view):
        return _has_role(request, 'admin', 'teacher')


class IsStudent(permissions.BasePermission):
    """Permission check for student role"""

    def has_permission(self, request, view):
        return _has_role(request, 'student')
