from flask import request, jsonify
from flask_login import current_user
from functools import wraps
import logging

logger = logging.getLogger(__name__)

# Exact paths that never require login
LOGIN_WHITELIST = [
    '/',
    '/favicon.ico',
    '/api/auth/login',
]

LOGIN_REQUIRED_BODY = {
    'error': 'Please login to continue.',
    'login_required': True,
}


def is_static_file(path):
    return path.startswith('/static/')


def setup_auth_middleware(app):

    @app.before_request
    def require_login():
        path = request.path

        # Allow static files
        if is_static_file(path):
            return None

        # Allow whitelist paths
        if path in LOGIN_WHITELIST:
            return None

        if request.method.upper() == 'OPTIONS':
            return None

        # Every other endpoint answers JSON, so no login page redirect
        if not current_user.is_authenticated:
            return jsonify(LOGIN_REQUIRED_BODY), 401

        return None


def role_required(*allowed_roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify(LOGIN_REQUIRED_BODY), 401

            # allowed_roles is a list of role names.
            if current_user.role.value not in allowed_roles:
                logger.warning(
                    "User %s attempted to access roles %s, current role: %s",
                    current_user.id,
                    allowed_roles,
                    current_user.role.value,
                )
                return jsonify({'error': 'Insufficient permissions'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator
