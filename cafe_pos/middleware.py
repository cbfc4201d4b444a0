"""Middleware for request user context."""
from flask import session, g


def load_user_context():
    """
    Load the current user id and role into g.

    Called before each request. Authentication itself happens upstream; this
    only exposes what it left in the session.
    """
    g.user_id = session.get('user_id')
    role = session.get('role')
    g.user_role = role.upper() if isinstance(role, str) and role else None
