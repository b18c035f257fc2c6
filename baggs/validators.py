"""
Validation utilities and request validation chains
"""
import math
import re
import uuid
from datetime import datetime, timezone

from baggs import db
from baggs.errors import ValidationError

_MISSING = object()


def validate_email(email):
    """
    Validate email format

    Args:
        email (str): Email address to validate

    Returns:
        bool: True if valid, False otherwise
    """
    if not email or not isinstance(email, str):
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_uuid(uuid_string):
    """
    Validate UUID format

    Args:
        uuid_string (str): UUID string to validate

    Returns:
        bool: True if valid UUID, False otherwise
    """
    if not isinstance(uuid_string, str):
        return False
    try:
        uuid.UUID(uuid_string)
        return True
    except ValueError:
        return False


def parse_datetime(value):
    """
    Parse an ISO-8601 string into a naive UTC datetime

    Args:
        value (str): e.g. "2024-01-15T09:00:00Z" or "2024-01-15"

    Returns:
        datetime or None when the value cannot be parsed
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class Validator:
    """
    Chainable request-body validator.

    Every rule records its failures instead of raising, so a single
    ``validate()`` call reports all failing fields together::

        data = (Validator(payload)
                .string('title', required=True, max_length=200)
                .choice('priority', Complaint.PRIORITIES)
                .validate())

    Cleaned values are keyed by model attribute name (``attr``), which
    defaults to the snake_case form of the wire field name.
    """

    def __init__(self, data):
        self.data = data if isinstance(data, dict) else {}
        self.errors = []
        self.cleaned = {}

    def error(self, field, message):
        self.errors.append({'field': field, 'message': message})
        return self

    def _value(self, field, required):
        value = self.data.get(field, _MISSING)
        if value is _MISSING or value is None:
            if required:
                self.error(field, f'{field} is required')
            return _MISSING
        return value

    def _store(self, field, attr, value):
        self.cleaned[attr or snake_case(field)] = value
        return self

    def string(self, field, attr=None, required=False, max_length=None, min_length=None, lower=False, strip=True):
        value = self._value(field, required)
        if value is _MISSING:
            return self
        if not isinstance(value, str):
            return self.error(field, f'{field} must be a string')
        if strip:
            value = value.strip()
        if required and not value:
            return self.error(field, f'{field} is required')
        if min_length is not None and len(value) < min_length:
            return self.error(field, f'{field} must be at least {min_length} characters')
        if max_length is not None and len(value) > max_length:
            return self.error(field, f'{field} cannot be more than {max_length} characters')
        return self._store(field, attr, value.lower() if lower else value)

    def email(self, field='email', attr=None, required=False):
        value = self._value(field, required)
        if value is _MISSING:
            return self
        if not validate_email(value):
            return self.error(field, 'Please include a valid email')
        return self._store(field, attr, value.strip().lower())

    def choice(self, field, choices, attr=None, required=False):
        value = self._value(field, required)
        if value is _MISSING:
            return self
        if value not in choices:
            return self.error(field, f'{field} must be one of: {", ".join(choices)}')
        return self._store(field, attr, value)

    def number(self, field, attr=None, required=False, minimum=None, maximum=None, integer=False):
        value = self._value(field, required)
        if value is _MISSING:
            return self
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return self.error(field, f'{field} must be a number')
        if isinstance(value, float) and not math.isfinite(value):
            return self.error(field, f'{field} must be a finite number')
        if integer and int(value) != value:
            return self.error(field, f'{field} must be an integer')
        if minimum is not None and value < minimum:
            return self.error(field, f'{field} must be at least {minimum}')
        if maximum is not None and value > maximum:
            return self.error(field, f'{field} must be at most {maximum}')
        return self._store(field, attr, int(value) if integer else value)

    def boolean(self, field, attr=None, required=False):
        value = self._value(field, required)
        if value is _MISSING:
            return self
        if not isinstance(value, bool):
            return self.error(field, f'{field} must be a boolean')
        return self._store(field, attr, value)

    def date(self, field, attr=None, required=False):
        value = self._value(field, required)
        if value is _MISSING:
            return self
        parsed = parse_datetime(value)
        if parsed is None:
            return self.error(field, f'{field} must be a valid ISO 8601 date')
        return self._store(field, attr, parsed)

    def reference(self, field, model, attr=None, required=False, label=None):
        """An id that must name an existing ``model`` row"""
        value = self._value(field, required)
        if value is _MISSING:
            return self
        label = label or field
        if not validate_uuid(value) or db.session.get(model, value) is None:
            return self.error(field, f'Invalid {label}')
        return self._store(field, attr, value)

    def string_list(self, field, attr=None, required=False, choices=None, min_items=0):
        value = self._value(field, required)
        if value is _MISSING:
            return self
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            return self.error(field, f'{field} must be an array of strings')
        if len(value) < min_items:
            return self.error(field, f'{field} must contain at least {min_items} item(s)')
        if choices is not None and any(v not in choices for v in value):
            return self.error(field, f'{field} values must be among: {", ".join(choices)}')
        return self._store(field, attr, value)

    def validate(self):
        """Return the cleaned values or raise ValidationError listing every failure"""
        if self.errors:
            raise ValidationError(errors=self.errors)
        return self.cleaned


def snake_case(name):
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()
