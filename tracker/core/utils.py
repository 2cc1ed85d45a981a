"""Utility functions for audit logging and request parsing"""
import logging
from datetime import datetime

from django.utils import timezone

from .models import AuditLog

logger = logging.getLogger(__name__)


class InvalidDateParam(ValueError):
    """Raised when a query/body date is not in YYYY-MM-DD form"""

    def __init__(self, name, value):
        self.name = name
        self.value = value
        super().__init__(f"Invalid date for '{name}': {value!r}. Expected YYYY-MM-DD.")


def parse_date_param(params, name, default=None):
    """
    Read a YYYY-MM-DD value from a QueryDict/dict.

    Returns `default` when the key is absent or blank, raises InvalidDateParam
    when it cannot be parsed.
    """
    value = params.get(name)
    if value in (None, ''):
        return default
    try:
        return datetime.strptime(str(value), '%Y-%m-%d').date()
    except ValueError:
        raise InvalidDateParam(name, value)


def get_as_of_date(params):
    """Reference date for date-sensitive calculations (defaults to today)"""
    return parse_date_param(params, 'as_of', default=timezone.localdate())


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, allocate, status_change, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., project name)
        object_reference: Business identifier (e.g., project code, invoice number)
    """
    audit_user = user
    if audit_user is None and request is not None and hasattr(request, 'user'):
        audit_user = request.user

    if not action or not model_name or object_id is None:
        logger.warning(
            f"Audit log creation skipped: missing required fields "
            f"(action={action}, model_name={model_name}, object_id={object_id})"
        )
        return None

    try:
        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        # Audit failures never fail the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None
