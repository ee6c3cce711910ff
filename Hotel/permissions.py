from rest_framework.permissions import SAFE_METHODS, BasePermission

from .constants import MANAGEMENT_ROLES, inventory_types_for
from .models import Staff


class IsStaff(BasePermission):
    message = 'Authentication required.'

    def has_permission(self, request, view):
        return isinstance(request.user, Staff) and request.user.is_active


class RolePermission(IsStaff):
    """
    Grants access to the roles listed on the view.

    Views set ``allowed_roles`` for every request and may narrow writes
    with ``write_roles``.
    """
    message = 'You do not have permission to access this resource.'

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        role = request.user.role
        allowed = getattr(view, 'allowed_roles', None)
        if allowed is not None and role not in allowed:
            return False
        write_roles = getattr(view, 'write_roles', None)
        if write_roles is not None and request.method not in SAFE_METHODS:
            return role in write_roles
        return True


class IsManagement(IsStaff):
    def has_permission(self, request, view):
        return super().has_permission(request, view) and request.user.role in MANAGEMENT_ROLES


class CanAccessInventoryType(IsStaff):
    """Object level check against the role -> inventory type mapping."""
    message = 'You do not have permission to access this type of inventory item.'

    def has_object_permission(self, request, view, obj):
        return obj.inventory_type in inventory_types_for(request.user.role)
