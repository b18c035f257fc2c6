import logging

from flask import Blueprint, g, request
from sqlalchemy import or_

from baggs import db
from baggs.errors import Conflict, NotFound
from baggs.models import User
from baggs.responses import STATUS_CODES, success_response
from baggs.utils import apply_sort, json_body, paginate_query, pagination_args, require_auth, require_role
from baggs.validators import Validator

logger = logging.getLogger(__name__)

users_bp = Blueprint('users', __name__)

SORTABLE = {
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
    'name': 'name',
    'email': 'email',
    'role': 'role',
    'rating': 'rating',
}


def profile_rules(validator, creating=False):
    """Fields any user may change on their own profile"""
    return (validator
            .string('name', required=creating, max_length=255)
            .string('phone', required=creating, max_length=50)
            .string('preferredLang', max_length=10)
            .string('region', max_length=100)
            .choice('timeFormat', User.TIME_FORMATS)
            .string('image', max_length=500)
            .string('address', max_length=500)
            .string('specialization', max_length=255)
            .string_list('informationPreference', choices=User.INFORMATION_PREFERENCES)
            .boolean('pushNotification')
            .boolean('emailAllowance')
            .boolean('automaticLanguageDetection'))


def admin_rules(validator, creating=False):
    profile_rules(validator, creating)
    return (validator
            .email('email', required=creating)
            .string('identityNumber', max_length=100)
            .choice('role', User.ROLES)
            .boolean('isAvailable')
            .number('rating', minimum=0, maximum=5)
            .number('totalTransfers', minimum=0, integer=True)
            .number('transferAveragePerMonth', minimum=0))


def ensure_unique(data, user_id=None):
    email = data.get('email')
    if email:
        existing = User.query.filter(User.email == email, User.id != user_id).first()
        if existing:
            raise Conflict('Email already in use')
    identity_number = data.get('identity_number')
    if identity_number:
        existing = User.query.filter(User.identity_number == identity_number, User.id != user_id).first()
        if existing:
            raise Conflict('Identity number already in use')


def get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound('User not found')
    return user


@users_bp.route('', methods=['GET'])
@require_auth
@require_role('admin')
def list_users():
    """
    List users (admin only)
    GET /api/v1/users?role=customer&search=jane&page=1&limit=10
    """
    query = User.query

    role = request.args.get('role')
    if role:
        query = query.filter(User.role == role)

    search = request.args.get('search', '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(
            User.name.ilike(pattern),
            User.email.ilike(pattern),
            User.phone.ilike(pattern),
        ))

    page, limit, sort_by, order = pagination_args()
    query = apply_sort(query, User, sort_by, order, SORTABLE)
    result = paginate_query(query, page, limit)

    return success_response(
        STATUS_CODES.OK,
        'Users retrieved successfully',
        [user.to_dict() for user in result['items']],
        count=len(result['items']),
        pagination={'total': result['total'], 'page': result['page'], 'pages': result['pages']},
    )


@users_bp.route('/me', methods=['PUT'])
@require_auth
def update_me():
    """
    Update your own profile and preferences
    PUT /api/v1/users/me

    Role and password cannot be changed here.
    """
    data = profile_rules(Validator(json_body())).validate()

    user = g.current_user
    user.apply(data)
    db.session.commit()

    return success_response(STATUS_CODES.OK, 'Profile updated successfully', user.to_dict())


@users_bp.route('/<user_id>', methods=['GET'])
@require_auth
@require_role('admin')
def get_user(user_id):
    """Get a single user (admin only)"""
    user = get_user_or_404(user_id)
    return success_response(STATUS_CODES.OK, 'User retrieved successfully', user.to_dict())


@users_bp.route('', methods=['POST'])
@require_auth
@require_role('admin')
def create_user():
    """
    Create a user of any role (admin only)
    POST /api/v1/users
    Body: { "name", "email", "phone", "password", "role", ... }
    """
    validator = Validator(json_body())
    admin_rules(validator, creating=True)
    validator.string('password', required=True, min_length=6, strip=False)
    data = validator.validate()

    ensure_unique(data)

    password = data.pop('password')
    user = User(**data)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    logger.info('Admin %s created %s user %s', g.current_user.id, user.role, user.id)
    return success_response(STATUS_CODES.CREATED, 'User created successfully', user.to_dict())


@users_bp.route('/<user_id>', methods=['PUT'])
@require_auth
@require_role('admin')
def update_user(user_id):
    """
    Update a user (admin only)
    PUT /api/v1/users/:id

    A password in the body is ignored.
    """
    payload = json_body()
    payload.pop('password', None)
    data = admin_rules(Validator(payload)).validate()

    user = get_user_or_404(user_id)

    ensure_unique(data, user.id)
    user.apply(data)
    db.session.commit()

    return success_response(STATUS_CODES.OK, 'User updated successfully', user.to_dict())


@users_bp.route('/<user_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_user(user_id):
    """Delete a user (admin only)"""
    user = get_user_or_404(user_id)
    db.session.delete(user)
    db.session.commit()

    logger.info('Admin %s deleted user %s', g.current_user.id, user_id)
    return success_response(STATUS_CODES.OK, 'User deleted successfully', {})
