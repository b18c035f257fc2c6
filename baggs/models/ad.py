"""
Ad model: admin-managed banners with a display window
"""
from baggs import db
from baggs.models.base import BaseModel, isoformat, utcnow


class Ad(BaseModel):
    __tablename__ = 'ads'

    title = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(500))
    image = db.Column(db.String(500))
    start_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expire_date = db.Column(db.DateTime, nullable=False, index=True)
    created_by_admin_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    created_by_admin = db.relationship('User', lazy='joined')

    def is_active(self, now=None):
        return self.expire_date > (now or utcnow())

    def to_dict(self, include_relationships=False):
        data = {
            'id': self.id,
            'title': self.title,
            'url': self.url,
            'image': self.image,
            'startAt': isoformat(self.start_at),
            'expireDate': isoformat(self.expire_date),
            'createdByAdminId': self.created_by_admin_id,
            'isActive': self.is_active(),
        }
        if include_relationships:
            admin = self.created_by_admin
            data['createdByAdmin'] = admin.summary() if admin else None
        data.update(self.timestamps())
        return data
