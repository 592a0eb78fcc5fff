"""Request identity and access guards.

Authentication itself happens upstream; by the time a request reaches the app
the auth layer has set ``X-User-Id``. The admin key and cron secret guards are
shared-secret checks for operator endpoints.
"""
import hmac
import logging
from functools import wraps
from flask import current_app, jsonify, request
from app.errors import AuthError, PermissionDenied
from app.extensions import db
from app.models.user import User

logger = logging.getLogger(__name__)


def get_current_user():
    """User for this request, or None when the header is missing or unknown."""
    raw_id = (request.headers.get('X-User-Id') or '').strip()
    if not raw_id.isdigit():
        return None
    return db.session.get(User, int(raw_id))


def require_user(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        if get_current_user() is None:
            raise AuthError('Authentication required')
        return func(*args, **kwargs)

    return wrapper


def require_verified_user(func):
    """Writes need a signed-in user with a verified email."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        user = get_current_user()
        if user is None:
            raise AuthError('Authentication required')
        if not user.email_verified:
            raise PermissionDenied('Email verification required')
        return func(*args, **kwargs)

    return wrapper


def require_moderator(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        user = get_current_user()
        if user is None:
            raise AuthError('Authentication required')
        if not user.is_moderator:
            raise PermissionDenied('Moderator role required')
        return func(*args, **kwargs)

    return wrapper


def _bearer_token():
    auth_header = request.headers.get('Authorization', '')
    if auth_header.lower().startswith('bearer '):
        return auth_header.split(' ', 1)[1].strip()
    return ''


def _extract_admin_token():
    return _bearer_token() or (request.headers.get('X-Admin-Key') or '').strip()


def require_admin_key(func):
    """Require ADMIN_API_KEY for all admin endpoints."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        configured_key = current_app.config.get('ADMIN_API_KEY')
        if not configured_key:
            return jsonify({'error': 'Admin API is disabled: ADMIN_API_KEY is not configured'}), 503

        presented_key = _extract_admin_token()
        if not presented_key or not hmac.compare_digest(presented_key, configured_key):
            return jsonify({'error': 'Unauthorized'}), 401

        return func(*args, **kwargs)

    return wrapper


def require_cron_secret(func):
    """
    Guard for the batch trigger.
    Production without CRON_SECRET is a configuration error (500). When a
    secret is configured the request must carry it as a bearer token (401
    otherwise). Without a secret outside production the endpoint is open.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        secret = current_app.config.get('CRON_SECRET')
        if not secret:
            if current_app.config.get('APP_ENV') == 'production':
                logger.error('[Cron] CRON_SECRET is not configured in production')
                return jsonify({'error': 'Server configuration error'}), 500
            return func(*args, **kwargs)

        presented = _bearer_token()
        if not presented or not hmac.compare_digest(presented, secret):
            return jsonify({'error': 'Unauthorized'}), 401

        return func(*args, **kwargs)

    return wrapper
