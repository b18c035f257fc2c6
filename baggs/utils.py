import time
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, g, request

from baggs import db
from baggs.errors import Forbidden, Unauthorized
from baggs.models import User


def generate_token(user: User, token_type: str = 'access') -> str:
    """Sign a JWT carrying the user's id and role"""
    lifetime = _token_lifetime(token_type)
    now = datetime.now(timezone.utc)
    payload = {
        'id': user.id,
        'role': user.role,
        'type': token_type,
        'iat': now,
        'exp': now + timedelta(seconds=lifetime),
    }
    return jwt.encode(
        payload,
        current_app.config['JWT_SECRET'],
        algorithm=current_app.config['JWT_ALGORITHM']
    )


def token_response(user: User) -> dict:
    """Access and refresh tokens with their absolute expiry in epoch milliseconds"""
    now_ms = int(time.time() * 1000)
    return {
        'access_token': generate_token(user, 'access'),
        'refresh_token': generate_token(user, 'refresh'),
        'expires_in': now_ms + _token_lifetime('access') * 1000,
        'refresh_expires_in': now_ms + _token_lifetime('refresh') * 1000,
    }


def decode_token(token: str, token_type: str = 'access') -> dict:
    """Decode and verify a JWT of the expected type"""
    try:
        payload = jwt.decode(
            token,
            current_app.config['JWT_SECRET'],
            algorithms=[current_app.config['JWT_ALGORITHM']]
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized('Token has expired')
    except jwt.InvalidTokenError:
        raise Unauthorized('Invalid token')

    if payload.get('type', 'access') != token_type:
        raise Unauthorized('Invalid token type')
    return payload


def load_identity(token: str, token_type: str = 'access') -> User:
    """Resolve a token to the stored user it names"""
    payload = decode_token(token, token_type)
    user = db.session.get(User, payload.get('id')) if payload.get('id') else None
    if user is None:
        raise Unauthorized('User not found')
    return user


def bearer_token():
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None
    return auth_header[len('Bearer '):].strip() or None


def require_auth(f):
    """Decorator to require a valid access token; sets g.current_user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            raise Unauthorized()
        g.current_user = load_identity(token)
        return f(*args, **kwargs)

    decorated_function.requires_auth = True
    return decorated_function


def require_role(*roles):
    """Decorator to require specific role(s); must sit below require_auth"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = g.get('current_user')
            if user is None:
                raise Unauthorized()
            if user.role not in roles:
                raise Forbidden(f'User role {user.role} is not authorized to access this route')
            return f(*args, **kwargs)

        decorated_function.required_roles = roles
        return decorated_function
    return decorator


def pagination_args():
    """page, limit, sortBy and order from the query string with defaults applied"""
    default_limit = current_app.config['ITEMS_PER_PAGE']
    max_limit = current_app.config['MAX_ITEMS_PER_PAGE']

    page = max(1, request.args.get('page', 1, type=int) or 1)
    limit = request.args.get('limit', default_limit, type=int) or default_limit
    limit = min(max_limit, max(1, limit))
    sort_by = request.args.get('sortBy', 'createdAt')
    order = request.args.get('order', 'desc').lower()
    if order not in ('asc', 'desc'):
        order = 'desc'
    return page, limit, sort_by, order


def apply_sort(query, model, sort_by, order, columns):
    """
    Order a query by a whitelisted field.

    ``columns`` maps wire names (camelCase) to model attributes; unknown
    names fall back to createdAt.
    """
    attr = columns.get(sort_by, 'created_at')
    column = getattr(model, attr)
    return query.order_by(column.asc() if order == 'asc' else column.desc())


def paginate_query(query, page=1, per_page=10):
    """Helper to paginate SQLAlchemy queries"""
    page = max(1, page)
    per_page = min(current_app.config['MAX_ITEMS_PER_PAGE'], max(1, per_page))

    paginated = query.paginate(page=page, per_page=per_page, error_out=False)

    return {
        'items': paginated.items,
        'total': paginated.total,
        'page': page,
        'per_page': per_page,
        'pages': paginated.pages,
        'has_next': paginated.has_next,
        'has_prev': paginated.has_prev
    }


def json_body():
    """Request JSON as a fresh dict; anything else becomes an empty body"""
    payload = request.get_json(silent=True)
    return dict(payload) if isinstance(payload, dict) else {}


def parse_bool(value):
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def _token_lifetime(token_type):
    key = 'JWT_REFRESH_EXPIRE' if token_type == 'refresh' else 'JWT_EXPIRE'
    return int(current_app.config[key])
