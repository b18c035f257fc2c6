"""
Complaint model and its response thread
"""
from sqlalchemy.ext.orderinglist import ordering_list

from baggs import db
from baggs.models.base import BaseModel, isoformat


class ComplaintResponse(BaseModel):
    __tablename__ = 'complaint_responses'

    complaint_id = db.Column(db.String(36), db.ForeignKey('complaints.id', ondelete='CASCADE'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    message = db.Column(db.String(1000), nullable=False)
    responder_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))
    responder_role = db.Column(db.String(20), nullable=False)
    attachments = db.Column(db.JSON, nullable=False, default=list)

    responder = db.relationship('User', lazy='joined')

    def to_dict(self):
        data = {
            'id': self.id,
            'message': self.message,
            'responderId': self.responder_id,
            'responder': self.responder.summary() if self.responder else None,
            'responderRole': self.responder_role,
            'attachments': self.attachments or [],
        }
        data.update(self.timestamps())
        return data


class Complaint(BaseModel):
    __tablename__ = 'complaints'

    CATEGORIES = ('service', 'worker', 'payment', 'technical', 'other')
    PRIORITIES = ('low', 'medium', 'high', 'urgent')
    STATUSES = ('pending', 'in_progress', 'resolved', 'rejected', 'closed')

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(2000), nullable=False)
    category = db.Column(db.String(20), nullable=False, index=True)
    priority = db.Column(db.String(20), nullable=False, default='medium', index=True)
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)

    transfer_id = db.Column(db.String(36), db.ForeignKey('transfers.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    assigned_to_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'), index=True)
    related_worker_id = db.Column(db.String(36), db.ForeignKey('workers.id', ondelete='SET NULL'), index=True)
    closed_by_admin_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))
    closed_at = db.Column(db.DateTime)

    attachments = db.Column(db.JSON, nullable=False, default=list)
    resolution = db.Column(db.String(1000))

    user = db.relationship('User', foreign_keys=[user_id], lazy='joined')
    assigned_to = db.relationship('User', foreign_keys=[assigned_to_id])
    related_worker = db.relationship('Worker')
    responses = db.relationship(
        'ComplaintResponse',
        order_by='ComplaintResponse.position',
        collection_class=ordering_list('position'),
        cascade='all, delete-orphan',
        lazy='selectin',
    )

    @property
    def is_closed(self):
        return self.status == 'closed'

    def to_dict(self, include_relationships=False):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'priority': self.priority,
            'status': self.status,
            'transferId': self.transfer_id,
            'userId': self.user_id,
            'assignedToId': self.assigned_to_id,
            'relatedWorkerId': self.related_worker_id,
            'closedByAdminId': self.closed_by_admin_id,
            'closedAt': isoformat(self.closed_at),
            'attachments': self.attachments or [],
            'resolution': self.resolution,
            'responses': [response.to_dict() for response in self.responses],
        }
        data.update(self.timestamps())

        if include_relationships:
            data['user'] = self.user.summary() if self.user else None
            data['assignedTo'] = self.assigned_to.summary() if self.assigned_to else None
            data['relatedWorker'] = self.related_worker.summary() if self.related_worker else None

        return data

    def __repr__(self):
        return f'<Complaint {self.id} {self.status}>'
