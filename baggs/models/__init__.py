"""
Database models for the Baggs backend
"""
from baggs.models.base import BaseModel, generate_uuid, isoformat, utcnow
from baggs.models.user import User
from baggs.models.worker import Worker
from baggs.models.transfer import Transfer
from baggs.models.complaint import Complaint, ComplaintResponse
from baggs.models.notification import Notification, NotificationRead, notification_targets
from baggs.models.ad import Ad

__all__ = [
    'BaseModel',
    'generate_uuid',
    'isoformat',
    'utcnow',
    'User',
    'Worker',
    'Transfer',
    'Complaint',
    'ComplaintResponse',
    'Notification',
    'NotificationRead',
    'notification_targets',
    'Ad',
]
