"""Middleware for sales officer context."""
from functools import wraps
from flask import session, g, current_app
from app.exceptions import UnauthorizedError


def load_sales_officer():
    """
    Load the current sales officer into g (Flask's per-request global).

    Authentication happens upstream; the login flow stores the officer id
    in the session as 'user_id'.
    """
    g.user_id = None
    try:
        user_id = session.get('user_id')
        if user_id:
            g.user_id = str(user_id)
    except Exception as e:
        current_app.logger.error(f"Error in load_sales_officer: {e}")


def require_login(f):
    """Decorator: Require a logged-in sales officer (401 JSON otherwise)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user_id') is None:
            raise UnauthorizedError('Login required', status_code=401)
        return f(*args, **kwargs)
    return decorated_function
