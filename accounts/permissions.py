"""
Role-based permissions for marketplace endpoints.
"""

from rest_framework import permissions


class IsBuyer(permissions.BasePermission):
    """
    Permission for buyer checkout and order history.
    """
    message = 'Only buyers can perform this action.'

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.role == 'BUYER'
        )


class IsFarmer(permissions.BasePermission):
    """
    Permission for farmer order management.
    """
    message = 'Only farmers can perform this action.'

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.role == 'FARMER'
        )


class IsAdmin(permissions.BasePermission):
    """
    Permission for marketplace administrators.
    """
    message = 'Only administrators can perform this action.'

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            (request.user.role == 'ADMIN' or request.user.is_superuser)
        )


class IsFarmerOrAdmin(permissions.BasePermission):
    message = 'Only farmers or administrators can perform this action.'

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            (request.user.role in ['FARMER', 'ADMIN'] or request.user.is_superuser)
        )
