from rest_framework.permissions import BasePermission


class HasCompany(BasePermission):
    """User must belong to a company (tenant) to touch tenant data"""
    message = 'User is not assigned to a company.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.company_id)


class IsCompanyAdmin(BasePermission):
    """Stage management is restricted to company admins"""
    message = 'Forbidden'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.company_id and user.is_company_admin)
