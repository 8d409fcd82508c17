"""Utility functions for audit logging and role checks"""
import logging
from .models import AuditLog
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group

User = get_user_model()
logger = logging.getLogger(__name__)

ADMIN_GROUP = 'Admin'
OFFICE_GROUP = 'Office'
ENGINEER_GROUP = 'Engineer'
APPLICATION_GROUPS = [ADMIN_GROUP, OFFICE_GROUP, ENGINEER_GROUP]

# role name accepted by the user endpoints -> group
ROLE_GROUPS = {
    'admin': ADMIN_GROUP,
    'office': OFFICE_GROUP,
    'engineer': ENGINEER_GROUP,
}


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
        action: Action type (create, update, delete, job_status, payment_add, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., customer name, invoice number)
        object_reference: Reference identifier (e.g., invoice number, job number)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Audit logging must not fail the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def is_admin_user(user):
    """
    Check if user is an admin user.
    Returns True if:
    - User is in 'Admin' group, OR
    - User is superuser/staff and not in any application group (fallback)
    """
    user_group_names = list(user.groups.values_list('name', flat=True))

    if ADMIN_GROUP in user_group_names:
        return True

    has_application_group = any(group in user_group_names for group in APPLICATION_GROUPS)
    if not has_application_group and (user.is_superuser or user.is_staff):
        return True

    return False


def is_office_user(user):
    """Billing and reports need the Office group or admin rights; no group means no access"""
    if not user or not user.is_authenticated:
        return False
    if is_admin_user(user):
        return True
    return user.groups.filter(name=OFFICE_GROUP).exists()


def is_engineer_user(user):
    """Engineers are members of the Engineer group who are not admins"""
    if is_admin_user(user):
        return False
    return user.groups.filter(name=ENGINEER_GROUP).exists()


def assign_role(user, role):
    """Replace the user's application groups with the one for role"""
    group, _ = Group.objects.get_or_create(name=ROLE_GROUPS[role])
    user.groups.remove(*user.groups.filter(name__in=APPLICATION_GROUPS))
    user.groups.add(group)


def engineer_scope(user):
    """Return the engineer name a user's job queries are restricted to, or None for full access"""
    if is_engineer_user(user):
        return user.display_name
    return None
