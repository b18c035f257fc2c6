"""
API error taxonomy and the Flask handlers that serialize it.

Handlers raise ``ApiError`` subclasses; ``register_error_handlers`` turns
them, database integrity errors and werkzeug HTTP errors into the standard
failure envelope.
"""
import logging
import re

from flask import request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from baggs.responses import STATUS_CODES, error_response

logger = logging.getLogger(__name__)

_UNIQUE_PATTERNS = (
    re.compile(r'UNIQUE constraint failed: \w+\.(\w+)'),  # sqlite
    re.compile(r'Key \((\w+)\)=\('),                      # postgresql
    re.compile(r"Duplicate entry .* for key '(?:\w+\.)?(\w+)'"),  # mysql
)


class ApiError(Exception):
    status_code = STATUS_CODES.INTERNAL_SERVER_ERROR
    default_message = 'Server Error'

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class BadRequest(ApiError):
    status_code = STATUS_CODES.BAD_REQUEST
    default_message = 'Bad request'


class Unauthorized(ApiError):
    status_code = STATUS_CODES.UNAUTHORIZED
    default_message = 'Not authorized to access this route'


class Forbidden(ApiError):
    status_code = STATUS_CODES.FORBIDDEN
    default_message = 'Not authorized to access this resource'


class NotFound(ApiError):
    status_code = STATUS_CODES.NOT_FOUND
    default_message = 'Resource not found'


class Conflict(ApiError):
    status_code = STATUS_CODES.CONFLICT
    default_message = 'Duplicate field value entered'


class ValidationError(ApiError):
    """Carries every failing field as ``{'field': ..., 'message': ...}``"""
    status_code = STATUS_CODES.VALIDATION_ERROR
    default_message = 'Validation error'


def duplicate_field(exc):
    """Best-effort name of the column behind a unique violation"""
    text = str(getattr(exc, 'orig', exc))
    for pattern in _UNIQUE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def register_error_handlers(app, db):
    """Attach the envelope-producing error handlers to ``app``"""

    @app.errorhandler(ApiError)
    def handle_api_error(e):
        db.session.rollback()
        logger.warning('%s %s -> %s %s', request.method, request.path, e.status_code, e.message)
        return error_response(e.status_code, e.message, e.errors)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        db.session.rollback()
        field = duplicate_field(e)
        message = f'Duplicate field value entered: {field}' if field else Conflict.default_message
        logger.warning('%s %s -> 409 %s', request.method, request.path, message)
        return error_response(STATUS_CODES.CONFLICT, message)

    @app.errorhandler(429)
    def handle_rate_limit(e):
        # Falls back to 60s when the exception carries no Retry-After header
        retry_after = dict(e.get_headers()).get('Retry-After')
        try:
            retry_after_seconds = int(retry_after) if retry_after else 60
        except (TypeError, ValueError):
            retry_after_seconds = 60
        logger.warning('%s %s -> 429 rate limit exceeded', request.method, request.path)
        return error_response(
            STATUS_CODES.TOO_MANY_REQUESTS,
            'Too many requests, please try again later.',
            retry_after=retry_after_seconds,
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        db.session.rollback()
        message = 'Route not found' if e.code == STATUS_CODES.NOT_FOUND else e.description
        logger.warning('%s %s -> %s %s', request.method, request.path, e.code, e.name)
        return error_response(e.code, message)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        logger.exception('Unhandled error on %s %s', request.method, request.path)
        return error_response(STATUS_CODES.INTERNAL_SERVER_ERROR, ApiError.default_message)
