"""
Shared Flask extension instances.

Created as a separate module to avoid circular imports when route
blueprints need access to extensions that are initialised in create_app().
"""
from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Storage URI, strategy and default limits come from the RATELIMIT_* config keys.
limiter = Limiter(key_func=get_remote_address)


def auth_rate_limit():
    return current_app.config['AUTH_RATE_LIMIT']
