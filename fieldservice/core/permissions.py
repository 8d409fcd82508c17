from rest_framework.permissions import BasePermission

from .utils import is_office_user


class IsOfficeUser(BasePermission):
    """Billing and reporting are for the Office and Admin roles only"""
    message = 'Billing and reports need the Office or Admin role.'

    def has_permission(self, request, view):
        return is_office_user(request.user)
