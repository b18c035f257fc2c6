"""
Uniform JSON envelope for every API response
"""
from flask import jsonify


class STATUS_CODES:
    OK = 200
    CREATED = 201
    NO_CONTENT = 204
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    CONFLICT = 409
    VALIDATION_ERROR = 422
    TOO_MANY_REQUESTS = 429
    INTERNAL_SERVER_ERROR = 500


def success_response(status, message, data=None, **meta):
    """
    Build a success envelope.

    Extra keyword arguments (count, pagination, ...) are merged into the
    top level of the body next to ``data``.
    """
    body = {
        'success': True,
        'status': status,
        'message': message,
        'data': data,
    }
    body.update(meta)
    return jsonify(body), status


def error_response(status, message, errors=None, **extra):
    body = {
        'success': False,
        'status': status,
        'message': message,
    }
    if errors:
        body['errors'] = errors
    body.update(extra)
    return jsonify(body), status
