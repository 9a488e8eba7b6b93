from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsAdmin(BasePermission):
    """Authenticated admin or superadmin"""
    message = 'Admin access required.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_admin and user.is_active)


def HasAdminPermission(*codes):
    """
    Build a permission class that requires an admin holding every code.

    Usage:
        @permission_classes([HasAdminPermission('expiry_management_view')])
    """
    class _HasAdminPermission(BasePermission):
        message = f"Missing permission: {', '.join(codes)}"

        def has_permission(self, request, view):
            user = request.user
            if not (user and user.is_authenticated):
                return False
            return all(user.has_admin_permission(code) for code in codes)

    _HasAdminPermission.__name__ = f"HasAdminPermission_{'_'.join(codes)}"
    return _HasAdminPermission


def AdminPermissionOrReadOnly(*codes):
    """Safe methods for everyone, writes need an admin holding every code"""
    admin_permission = HasAdminPermission(*codes)

    class _AdminPermissionOrReadOnly(admin_permission):
        def has_permission(self, request, view):
            if request.method in SAFE_METHODS:
                return True
            return super().has_permission(request, view)

    _AdminPermissionOrReadOnly.__name__ = f"AdminPermissionOrReadOnly_{'_'.join(codes)}"
    return _AdminPermissionOrReadOnly
