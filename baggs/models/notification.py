"""
Notification model with targeted audiences and per-user read receipts
"""
from datetime import timedelta

from flask import current_app
from sqlalchemy import and_, exists, insert, or_

from baggs import db
from baggs.models.base import BaseModel, isoformat, utcnow
from baggs.models.user import User


def _default_expiry():
    return utcnow() + current_app.config.get('NOTIFICATION_TTL', timedelta(days=30))


notification_targets = db.Table(
    'notification_targets',
    db.Column('notification_id', db.String(36), db.ForeignKey('notifications.id', ondelete='CASCADE'), primary_key=True),
    db.Column('user_id', db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
)


class NotificationRead(db.Model):
    """Read receipt: one row per (notification, user)"""
    __tablename__ = 'notification_reads'

    notification_id = db.Column(db.String(36), db.ForeignKey('notifications.id', ondelete='CASCADE'), primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    read_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {'user': self.user_id, 'readAt': isoformat(self.read_at)}


class Notification(BaseModel):
    __tablename__ = 'notifications'

    TYPES = ('info', 'warning', 'success', 'error')

    title = db.Column(db.String(100), nullable=False)
    message = db.Column(db.String(1000), nullable=False)
    type = db.Column(db.String(20), nullable=False, default='info', index=True)
    is_global = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_by_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))
    expires_at = db.Column(db.DateTime, nullable=False, default=_default_expiry, index=True)
    send_now = db.Column(db.Boolean, nullable=False, default=False)
    send_notification_on_date = db.Column(db.DateTime)
    redirect_to = db.Column(db.String(500))

    targets = db.relationship('User', secondary=notification_targets, lazy='selectin')
    reads = db.relationship('NotificationRead', cascade='all, delete-orphan', lazy='selectin')
    created_by = db.relationship('User', foreign_keys=[created_by_id])

    @classmethod
    def for_users(cls, user_ids, **fields):
        """Unsaved notification targeted at the given users"""
        fields.setdefault('is_global', False)
        notification = cls(**fields)
        notification.targets = User.query.filter(User.id.in_(list(user_ids))).all()
        return notification

    @classmethod
    def visible_to(cls, user_id, now=None):
        """Query of notifications user_id may see: global or targeted, and unexpired"""
        now = now or utcnow()
        targeted = exists().where(and_(
            notification_targets.c.notification_id == cls.id,
            notification_targets.c.user_id == user_id,
        ))
        return cls.query.filter(or_(cls.is_global.is_(True), targeted), cls.expires_at > now)

    @classmethod
    def read_clause(cls, user_id):
        return exists().where(and_(
            NotificationRead.notification_id == cls.id,
            NotificationRead.user_id == user_id,
        ))

    @classmethod
    def mark_all_read(cls, user_id):
        """
        Insert read receipts for every visible notification user_id has not read.

        Returns the number of receipts written; zero when everything is
        already read.
        """
        unread = cls.visible_to(user_id).filter(~cls.read_clause(user_id)).with_entities(cls.id)
        unread_ids = [nid for (nid,) in unread.all()]
        if not unread_ids:
            return 0

        now = utcnow()
        db.session.execute(
            insert(NotificationRead),
            [{'notification_id': nid, 'user_id': user_id, 'read_at': now} for nid in unread_ids],
        )
        return len(unread_ids)

    def is_targeted_to(self, user_id):
        return any(user.id == user_id for user in self.targets)

    def is_visible_to(self, user_id, now=None):
        now = now or utcnow()
        return (self.is_global or self.is_targeted_to(user_id)) and self.expires_at > now

    def is_read_by(self, user_id):
        return any(receipt.user_id == user_id for receipt in self.reads)

    def mark_read(self, user_id):
        """Append a read receipt unless one exists; returns True when added"""
        if self.is_read_by(user_id):
            return False
        self.reads.append(NotificationRead(user_id=user_id, read_at=utcnow()))
        return True

    def to_dict(self, user_id=None):
        data = {
            'id': self.id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'isGlobal': self.is_global,
            'targetUsers': [user.id for user in self.targets],
            'createdBy': self.created_by_id,
            'readBy': [receipt.to_dict() for receipt in self.reads],
            'expiresAt': isoformat(self.expires_at),
            'sendNow': self.send_now,
            'sendNotificationOnDate': isoformat(self.send_notification_on_date),
            'redirectTo': self.redirect_to,
        }
        if user_id is not None:
            data['isRead'] = self.is_read_by(user_id)
        data.update(self.timestamps())
        return data

    def __repr__(self):
        return f'<Notification {self.id} {self.title!r}>'
