"""
User model: admins, customers and worker-role accounts
"""
from baggs import db
from baggs.models.base import BaseModel, PasswordMixin


class User(PasswordMixin, BaseModel):
    __tablename__ = 'users'

    ROLES = ('admin', 'customer', 'worker')
    INFORMATION_PREFERENCES = ('email', 'sms', 'call')
    TIME_FORMATS = ('12', '24')

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(50), nullable=False)
    identity_number = db.Column(db.String(100), unique=True)
    role = db.Column(db.String(20), nullable=False, default='customer', index=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    # Profile
    preferred_lang = db.Column(db.String(10), nullable=False, default='en')
    region = db.Column(db.String(100))
    time_format = db.Column(db.String(2), nullable=False, default='24')
    image = db.Column(db.String(500))
    address = db.Column(db.String(500))
    specialization = db.Column(db.String(255))
    rating = db.Column(db.Float, nullable=False, default=0)
    total_transfers = db.Column(db.Integer, nullable=False, default=0)
    transfer_average_per_month = db.Column(db.Float, nullable=False, default=0)

    # Preferences
    information_preference = db.Column(db.JSON, nullable=False, default=lambda: ['email'])
    push_notification = db.Column(db.Boolean, nullable=False, default=True)
    email_allowance = db.Column(db.Boolean, nullable=False, default=True)
    automatic_language_detection = db.Column(db.Boolean, nullable=False, default=False)

    @property
    def is_admin(self):
        return self.role == 'admin'

    def summary(self):
        """Populated form used inside other resources"""
        return {'id': self.id, 'name': self.name, 'email': self.email}

    def to_dict(self):
        data = {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'identityNumber': self.identity_number,
            'role': self.role,
            'isAvailable': self.is_available,
            'preferredLang': self.preferred_lang,
            'region': self.region,
            'timeFormat': self.time_format,
            'image': self.image,
            'address': self.address,
            'specialization': self.specialization,
            'rating': self.rating,
            'totalTransfers': self.total_transfers,
            'transferAveragePerMonth': self.transfer_average_per_month,
            'informationPreference': self.information_preference or [],
            'pushNotification': self.push_notification,
            'emailAllowance': self.email_allowance,
            'automaticLanguageDetection': self.automatic_language_detection,
        }
        data.update(self.timestamps())
        return data

    def __repr__(self):
        return f'<User {self.email}>'
