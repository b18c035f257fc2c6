import logging

from flask import Blueprint, g

from baggs import db
from baggs.errors import BadRequest, Conflict, Unauthorized
from baggs.extensions import auth_rate_limit, limiter
from baggs.models import User
from baggs.responses import STATUS_CODES, success_response
from baggs.utils import json_body, load_identity, require_auth, token_response
from baggs.validators import Validator

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/register', methods=['POST'])
@limiter.limit(auth_rate_limit)
def register():
    """
    Register a new customer account
    POST /api/v1/auth/register
    Body: {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "phone": "+15551234567",
        "password": "secret123",
        "identityNumber": "A1234567"   (optional)
    }
    """
    data = (Validator(json_body())
            .string('name', required=True, max_length=255)
            .email('email', required=True)
            .string('phone', required=True, max_length=50)
            .string('password', required=True, min_length=6, strip=False)
            .string('identityNumber', max_length=100)
            .validate())

    if User.query.filter_by(email=data['email']).first():
        raise Conflict('User already exists')
    if data.get('identity_number') and User.query.filter_by(identity_number=data['identity_number']).first():
        raise Conflict('Identity number already registered')

    password = data.pop('password')
    user = User(role='customer', **data)
    user.set_password(password)

    db.session.add(user)
    db.session.commit()

    logger.info('Registered customer %s', user.id)
    return success_response(STATUS_CODES.CREATED, 'User registered successfully', token_response(user))


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(auth_rate_limit)
def login():
    """
    Log in with email and password
    POST /api/v1/auth/login
    Body: { "email": "jane@example.com", "password": "secret123" }
    """
    data = (Validator(json_body())
            .email('email', required=True)
            .string('password', required=True, strip=False)
            .validate())

    user = User.query.filter_by(email=data['email']).first()
    if not user or not user.check_password(data['password']):
        logger.warning('Failed login for %s', data['email'])
        raise Unauthorized('Invalid credentials')

    return success_response(STATUS_CODES.OK, 'Login successful', token_response(user))


@auth_bp.route('/me', methods=['GET'])
@require_auth
def get_me():
    """Current logged in user"""
    return success_response(STATUS_CODES.OK, 'User retrieved successfully', g.current_user.to_dict())


@auth_bp.route('/logout', methods=['GET'])
@require_auth
def logout():
    """Log out (tokens are stateless; the client discards them)"""
    return success_response(STATUS_CODES.OK, 'Logged out successfully', {})


@auth_bp.route('/refresh', methods=['POST'])
@limiter.limit(auth_rate_limit)
def refresh():
    """
    Exchange a refresh token for a new token pair
    POST /api/v1/auth/refresh
    Body: { "refresh_token": "<jwt>" }
    """
    payload = json_body()
    token = payload.get('refresh_token')
    if not token or not isinstance(token, str):
        raise BadRequest('Refresh token is required')

    user = load_identity(token, token_type='refresh')
    return success_response(STATUS_CODES.OK, 'Token refreshed successfully', token_response(user))
