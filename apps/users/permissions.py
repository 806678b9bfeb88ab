"""Permission classes for admin-only API endpoints."""

from __future__ import annotations

from rest_framework import permissions  # type: ignore

from .identity import is_admin_user


class IsAdminRole(permissions.BasePermission):
    """
    Only users acting with the admin role may access.

    Staff and superusers are admins, as are members of the configured
    admin group.
    """

    def has_permission(self, request, view) -> bool:  # type: ignore
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return is_admin_user(user)
