"""
Base model with common fields and helpers
"""
import uuid
from datetime import datetime, timezone

import bcrypt
from flask import current_app

from baggs import db


def generate_uuid():
    return str(uuid.uuid4())


def utcnow():
    """Naive UTC timestamp; every DateTime column stores UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    return value.isoformat() if value else None


class BaseModel(db.Model):
    """Abstract base model with a UUID primary key and timestamps"""
    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def apply(self, changes):
        """Assign already-validated attribute values"""
        for attr, value in changes.items():
            setattr(self, attr, value)

    def timestamps(self):
        return {
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }


class PasswordMixin:
    """bcrypt password hash shared by users and workers"""
    password_hash = db.Column(db.String(255), nullable=False)

    def set_password(self, password):
        rounds = current_app.config.get('BCRYPT_LOG_ROUNDS', 12)
        self.password_hash = bcrypt.hashpw(
            password.encode('utf-8'), bcrypt.gensalt(rounds=rounds)
        ).decode('utf-8')

    def check_password(self, password):
        if not password or not self.password_hash:
            return False
        return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
