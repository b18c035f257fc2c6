"""
Transfer model: a customer's delivery work order
"""
from baggs import db
from baggs.models.base import BaseModel, isoformat


class Transfer(BaseModel):
    __tablename__ = 'transfers'

    STATUSES = ('pending', 'in_progress', 'onTheWay', 'completed', 'cancelled')
    PAYMENT_STATUSES = ('pending', 'paid', 'failed', 'refunded')
    CURRENT_STATUSES = ('pending', 'in_progress', 'onTheWay')

    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    worker_id = db.Column(db.String(36), db.ForeignKey('workers.id', ondelete='SET NULL'), index=True)
    # Back-reference to the complaint; complaints own the real foreign key
    complaint_id = db.Column(db.String(36), index=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    total_amount = db.Column(db.Float, nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    payment_status = db.Column(db.String(20), nullable=False, default='pending', index=True)

    from_location = db.Column(db.String(500))
    to_location = db.Column(db.String(500))
    flight_gate = db.Column(db.String(50))
    flight_number = db.Column(db.String(50))
    delivery_date = db.Column(db.DateTime, index=True)
    delivery_time = db.Column(db.String(20))
    pick_up_date = db.Column(db.DateTime)
    pick_up_time = db.Column(db.String(20))

    # Lifecycle stamps
    assigneed_at = db.Column(db.DateTime)
    accepted_at = db.Column(db.DateTime)
    on_the_way_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)

    rating = db.Column(db.JSON)

    user = db.relationship('User', lazy='joined')
    worker = db.relationship('Worker', lazy='joined')
    complaint = db.relationship(
        'Complaint',
        primaryjoin='foreign(Transfer.complaint_id) == Complaint.id',
        uselist=False,
        viewonly=True,
    )

    def to_dict(self, include_relationships=False):
        data = {
            'id': self.id,
            'userId': self.user_id,
            'workerId': self.worker_id,
            'complaintId': self.complaint_id,
            'items': self.items or [],
            'totalAmount': self.total_amount,
            'status': self.status,
            'paymentStatus': self.payment_status,
            'from': self.from_location,
            'to': self.to_location,
            'flightGate': self.flight_gate,
            'flightNumber': self.flight_number,
            'deliveryDate': isoformat(self.delivery_date),
            'deliveryTime': self.delivery_time,
            'pickUpDate': isoformat(self.pick_up_date),
            'pickUpTime': self.pick_up_time,
            'assigneedAt': isoformat(self.assigneed_at),
            'acceptedAt': isoformat(self.accepted_at),
            'onTheWayAt': isoformat(self.on_the_way_at),
            'completedAt': isoformat(self.completed_at),
            'cancelledAt': isoformat(self.cancelled_at),
            'rating': self.rating,
        }
        data.update(self.timestamps())

        if include_relationships:
            data['user'] = self.user.summary() if self.user else None
            data['worker'] = self.worker.summary() if self.worker else None
            data['complaint'] = self.complaint.to_dict() if self.complaint else None

        return data

    def __repr__(self):
        return f'<Transfer {self.id} {self.status}>'
