"""
Worker model: the operational staff who carry out transfers
"""
from baggs import db
from baggs.models.base import BaseModel, PasswordMixin, utcnow, isoformat


class Worker(PasswordMixin, BaseModel):
    __tablename__ = 'workers'

    STATUSES = ('Available', 'Assigned', 'OnTheWay')
    ROLES = ('worker', 'manager', 'supervisor')

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(50), nullable=False)
    identity_number = db.Column(db.String(100), unique=True, nullable=False)
    is_available = db.Column(db.Boolean, nullable=False, default=True, index=True)
    status = db.Column(db.String(20), nullable=False, default='Available', index=True)
    role = db.Column(db.String(20), nullable=False, default='worker')

    specialization = db.Column(db.String(255))
    rating = db.Column(db.Float, nullable=False, default=0)
    completed_jobs = db.Column(db.Integer, nullable=False, default=0)
    skills = db.Column(db.JSON, nullable=False, default=list)
    certificates = db.Column(db.JSON, nullable=False, default=list)
    experience = db.Column(db.Float, nullable=False, default=0)
    service_ratings = db.Column(db.JSON, nullable=False, default=list)

    preferred_lang = db.Column(db.String(10), nullable=False, default='en')
    region = db.Column(db.String(100))
    time_format = db.Column(db.String(2), nullable=False, default='24')
    image = db.Column(db.String(500))

    def add_service_rating(self, transfer_id, rating, comment=None):
        """Append a rating and recompute the mean rating"""
        entry = {
            'transferId': transfer_id,
            'rating': rating,
            'comment': comment,
            'createdAt': isoformat(utcnow()),
        }
        # Reassign so the JSON column is flagged dirty
        ratings = list(self.service_ratings or []) + [entry]
        self.service_ratings = ratings
        self.rating = round(sum(r['rating'] for r in ratings) / len(ratings), 2)

    def summary(self):
        return {'id': self.id, 'name': self.name, 'email': self.email, 'phone': self.phone}

    def to_dict(self):
        data = {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'identityNumber': self.identity_number,
            'isAvailable': self.is_available,
            'status': self.status,
            'role': self.role,
            'specialization': self.specialization,
            'rating': self.rating,
            'completedJobs': self.completed_jobs,
            'skills': self.skills or [],
            'certificates': self.certificates or [],
            'experience': self.experience,
            'serviceRatings': self.service_ratings or [],
            'preferredLang': self.preferred_lang,
            'region': self.region,
            'timeFormat': self.time_format,
            'image': self.image,
        }
        data.update(self.timestamps())
        return data

    def __repr__(self):
        return f'<Worker {self.email} {self.status}>'
