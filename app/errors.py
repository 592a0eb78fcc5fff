"""Error taxonomy for the registry and scoring services.

Services raise these; routes let them propagate to the handler registered in
``register_error_handlers``, which renders ``{"error": ..., "code": ...}``.
"""
import logging
from flask import jsonify
from sqlalchemy.exc import OperationalError
from app.extensions import db

logger = logging.getLogger(__name__)


class SlopRegistryError(Exception):
    http_status = 500
    code = 'internal_error'

    def __init__(self, message=None):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class NotFound(SlopRegistryError):
    http_status = 404
    code = 'not_found'


class ParentNotFound(NotFound):
    code = 'parent_not_found'

    def __init__(self, parent_id):
        self.parent_id = parent_id
        super().__init__(f"Parent source {parent_id} not found")


class ValidationError(SlopRegistryError):
    http_status = 400
    code = 'validation_error'


class MaxDepthExceeded(ValidationError):
    code = 'max_depth_exceeded'

    def __init__(self, max_depth):
        self.max_depth = max_depth
        super().__init__(f"Sources cannot be nested deeper than {max_depth} levels")


class ConflictError(SlopRegistryError):
    http_status = 409
    code = 'conflict'


class DuplicateSlug(ConflictError):
    code = 'duplicate_slug'

    def __init__(self, slug):
        self.slug = slug
        super().__init__(f"A source with slug '{slug}' already exists here")


class AuthError(SlopRegistryError):
    http_status = 401
    code = 'auth_required'


class PermissionDenied(AuthError):
    http_status = 403
    code = 'forbidden'


class TransientStoreError(SlopRegistryError):
    http_status = 503
    code = 'store_unavailable'


def register_error_handlers(app):
    @app.errorhandler(SlopRegistryError)
    def handle_registry_error(exc):
        if exc.http_status >= 500:
            logger.error("%s: %s", exc.code, exc.message)
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(OperationalError)
    def handle_store_error(exc):
        db.session.rollback()
        logger.error("Database unavailable: %s", exc)
        error = TransientStoreError('Database temporarily unavailable')
        return jsonify(error.to_dict()), error.http_status
