"""Role checks shared by all API views"""
import logging

from rest_framework import status
from rest_framework.permissions import BasePermission
from rest_framework.response import Response

from .models import User

logger = logging.getLogger(__name__)

PROJECT_EDITORS = [User.ROLE_ADMIN, User.ROLE_PROJECT_MANAGER]
RESOURCE_EDITORS = [User.ROLE_ADMIN, User.ROLE_RESOURCE_MANAGER]
ALLOCATION_EDITORS = [User.ROLE_ADMIN, User.ROLE_RESOURCE_MANAGER, User.ROLE_PROJECT_MANAGER]
EXPENSE_EDITORS = [User.ROLE_ADMIN, User.ROLE_PROJECT_MANAGER, User.ROLE_FINANCE_MANAGER]
INVOICE_EDITORS = [User.ROLE_ADMIN, User.ROLE_FINANCE_MANAGER]


def has_role(user, roles):
    """True when the authenticated user holds one of `roles`"""
    if not user or not user.is_authenticated:
        return False
    return getattr(user, 'effective_role', None) in roles


def permission_denied(request):
    logger.warning(
        f"User {getattr(request.user, 'email', None)} denied {request.method} {request.path}"
    )
    return Response(
        {'error': 'Access denied. Insufficient permissions.'},
        status=status.HTTP_403_FORBIDDEN
    )


class IsAdminRole(BasePermission):
    """Allows access only to users with the ADMIN role (or superusers)"""
    message = 'Access denied. Insufficient permissions.'

    def has_permission(self, request, view):
        return has_role(request.user, [User.ROLE_ADMIN])
