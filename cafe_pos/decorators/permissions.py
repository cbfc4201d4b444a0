"""
Permission decorators for role-based access control.

Roles come from the request context (see ``cafe_pos.middleware``). How a role gets
into the session is up to the authentication layer in front of this service.
"""

from functools import wraps
from flask import g

from cafe_pos.exceptions import UnauthorizedError

# Permission map by role
PERMISSION_MAP = {
    'OWNER': 'all',  # Owner has all permissions
    'ADMIN': [
        'view_catalog',
        'view_sales', 'create_sales', 'edit_sales', 'delete_sales',
        'view_inventory',
    ],
    'STAFF': [
        'view_catalog',
        'view_sales',
        'create_sales',  # POS access
        'view_inventory',
    ],
}


def has_permission(role, permission_name) -> bool:
    role_permissions = PERMISSION_MAP.get(role, [])
    if role_permissions == 'all':
        return True
    return permission_name in role_permissions


def require_permission(permission_name):
    """
    Decorator to check for a specific permission.

    Usage:
        @require_permission('create_sales')

    Raises UnauthorizedError (403) when there is no role or the role lacks it.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_role = g.get('user_role')

            if not user_role:
                raise UnauthorizedError('Could not determine your role.')

            if not has_permission(user_role, permission_name):
                raise UnauthorizedError(f'You do not have permission to: {permission_name}')

            return f(*args, **kwargs)

        return decorated_function
    return decorator
