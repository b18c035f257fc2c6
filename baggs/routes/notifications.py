import logging

from flask import Blueprint, g, request
from sqlalchemy import or_

from baggs import db
from baggs.errors import Forbidden, NotFound
from baggs.models import Notification, User
from baggs.policy import authorize
from baggs.responses import STATUS_CODES, success_response
from baggs.utils import apply_sort, json_body, paginate_query, pagination_args, parse_bool, require_auth, require_role
from baggs.validators import Validator

logger = logging.getLogger(__name__)

notifications_bp = Blueprint('notifications', __name__)

SORTABLE = {
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
    'expiresAt': 'expires_at',
    'type': 'type',
    'title': 'title',
}

AUDIENCE_MESSAGE = 'Please provide target users or set as global notification, but not both'
SEND_OPTIONS_MESSAGE = (
    'You must either set "sendNow" to true or provide "sendNotificationOnDate", '
    'but not both or neither.'
)


def notification_rules(validator, creating=False):
    validator = (validator
                 .string('title', required=creating, max_length=100)
                 .string('message', required=creating, max_length=1000)
                 .choice('type', Notification.TYPES)
                 .string_list('targetUsers', attr='target_user_ids')
                 .boolean('isGlobal')
                 .date('expiresAt')
                 .string('redirectTo', max_length=500)
                 .boolean('sendNow')
                 .date('sendNotificationOnDate'))

    target_ids = validator.cleaned.get('target_user_ids')
    if target_ids:
        found = User.query.filter(User.id.in_(set(target_ids))).count()
        if found != len(set(target_ids)):
            validator.error('targetUsers', 'One or more target users do not exist')
    return validator


def check_audience(validator):
    """Exactly one of isGlobal=true or a non-empty targetUsers list"""
    is_global = validator.data.get('isGlobal') is True
    has_targets = bool(validator.data.get('targetUsers'))
    if is_global == has_targets:
        validator.error('targetUsers', AUDIENCE_MESSAGE)
    return validator


def check_send_options(validator):
    """Exactly one of sendNow=true or a sendNotificationOnDate"""
    send_now = validator.data.get('sendNow') is True
    scheduled = bool(validator.data.get('sendNotificationOnDate'))
    if send_now == scheduled:
        validator.error('sendNow', SEND_OPTIONS_MESSAGE)
    return validator


def check_update(validator, notification):
    """
    Audience and send rules against the stored notification overlaid with the payload.

    isGlobal=true without targetUsers drops the stored targets, and sendNow=true
    without sendNotificationOnDate drops the stored date.
    """
    payload = validator.data

    is_global = payload['isGlobal'] if isinstance(payload.get('isGlobal'), bool) else notification.is_global
    if 'targetUsers' in payload:
        has_targets = bool(payload['targetUsers'])
    else:
        has_targets = bool(notification.targets) and payload.get('isGlobal') is not True
    if is_global == has_targets:
        validator.error('targetUsers', AUDIENCE_MESSAGE)

    send_now = payload['sendNow'] if isinstance(payload.get('sendNow'), bool) else notification.send_now
    if 'sendNotificationOnDate' in payload:
        scheduled = bool(payload['sendNotificationOnDate'])
    else:
        scheduled = notification.send_notification_on_date is not None and payload.get('sendNow') is not True
    if send_now == scheduled:
        validator.error('sendNow', SEND_OPTIONS_MESSAGE)
    return validator


def get_notification_or_404(notification_id):
    notification = db.session.get(Notification, notification_id)
    if not notification:
        raise NotFound(f'Notification not found with id of {notification_id}')
    return notification


def apply_targets(notification, target_ids):
    notification.targets = User.query.filter(User.id.in_(set(target_ids))).all() if target_ids else []


@notifications_bp.route('', methods=['GET'])
@require_auth
@require_role('admin')
def list_notifications():
    """
    List all notifications (admin only)
    GET /api/v1/notifications?type=info&isGlobal=true&search=update&page=1&limit=10
    """
    query = Notification.query

    notification_type = request.args.get('type')
    if notification_type:
        query = query.filter(Notification.type == notification_type)

    is_global = parse_bool(request.args.get('isGlobal'))
    if is_global is not None:
        query = query.filter(Notification.is_global.is_(is_global))

    search = request.args.get('search', '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(Notification.title.ilike(pattern), Notification.message.ilike(pattern)))

    page, limit, sort_by, order = pagination_args()
    query = apply_sort(query, Notification, sort_by, order, SORTABLE)
    result = paginate_query(query, page, limit)

    return success_response(
        STATUS_CODES.OK,
        'Notifications retrieved successfully',
        [notification.to_dict() for notification in result['items']],
        pagination={'total': result['total'], 'page': result['page'], 'pages': result['pages']},
    )


@notifications_bp.route('/my-notifications', methods=['GET'])
@require_auth
def my_notifications():
    """
    Notifications visible to the current user, newest first
    GET /api/v1/notifications/my-notifications?read=false&type=info

    Visible means global or targeted at you, and not yet expired.
    """
    user_id = g.current_user.id
    query = Notification.visible_to(user_id)

    read = parse_bool(request.args.get('read'))
    if read is True:
        query = query.filter(Notification.read_clause(user_id))
    elif read is False:
        query = query.filter(~Notification.read_clause(user_id))

    notification_type = request.args.get('type')
    if notification_type:
        query = query.filter(Notification.type == notification_type)

    notifications = query.order_by(Notification.created_at.desc()).all()
    return success_response(
        STATUS_CODES.OK,
        'Notifications retrieved successfully',
        [notification.to_dict(user_id=user_id) for notification in notifications],
        count=len(notifications),
    )


@notifications_bp.route('/mark-all-read', methods=['PATCH'])
@require_auth
def mark_all_read():
    """Mark every visible, unread notification as read for the current user"""
    marked = Notification.mark_all_read(g.current_user.id)
    db.session.commit()

    logger.debug('User %s marked %d notifications read', g.current_user.id, marked)
    return success_response(STATUS_CODES.OK, 'All notifications marked as read', {'marked': marked})


@notifications_bp.route('/<notification_id>', methods=['GET'])
@require_auth
def get_notification(notification_id):
    """Get a single notification (its audience or an admin)"""
    notification = get_notification_or_404(notification_id)
    authorize(g.current_user, 'notification:read', notification)
    return success_response(
        STATUS_CODES.OK,
        'Notification retrieved successfully',
        notification.to_dict(user_id=g.current_user.id),
    )


@notifications_bp.route('', methods=['POST'])
@require_auth
@require_role('admin')
def create_notification():
    """
    Create a notification (admin only)
    POST /api/v1/notifications
    Body: {
        "title": "Service update",
        "message": "...",
        "type": "info",
        "isGlobal": true,             (or "targetUsers": ["<uuid>", ...])
        "sendNow": true,              (or "sendNotificationOnDate": "2024-01-15T09:00:00Z")
        "expiresAt": "2024-02-01T00:00:00Z",
        "redirectTo": "/my-transfers"
    }
    """
    validator = notification_rules(Validator(json_body()), creating=True)
    check_audience(validator)
    check_send_options(validator)
    data = validator.validate()

    target_ids = data.pop('target_user_ids', None)
    notification = Notification(created_by_id=g.current_user.id, **data)
    apply_targets(notification, target_ids)
    db.session.add(notification)
    db.session.commit()

    logger.info('Admin %s created notification %s', g.current_user.id, notification.id)
    return success_response(STATUS_CODES.CREATED, 'Notification created successfully', notification.to_dict())


@notifications_bp.route('/<notification_id>/read', methods=['PUT'])
@require_auth
def mark_read(notification_id):
    """Mark one notification as read; repeating the call is harmless"""
    user_id = g.current_user.id
    notification = get_notification_or_404(notification_id)
    if not notification.is_visible_to(user_id):
        raise Forbidden('Not authorized to access this notification')

    if notification.mark_read(user_id):
        db.session.commit()

    return success_response(
        STATUS_CODES.OK,
        'Notification marked as read successfully',
        notification.to_dict(user_id=user_id),
    )


@notifications_bp.route('/<notification_id>', methods=['PUT'])
@require_auth
@require_role('admin')
def update_notification(notification_id):
    """
    Update a notification (admin only)
    PUT /api/v1/notifications/:id

    The result must still have exactly one audience and one send option.
    """
    payload = json_body()
    notification = get_notification_or_404(notification_id)
    validator = check_update(notification_rules(Validator(payload)), notification)
    data = validator.validate()

    target_ids = data.pop('target_user_ids', None)
    if payload.get('isGlobal') is True and target_ids is None:
        target_ids = []
    if 'sendNotificationOnDate' in payload and payload['sendNotificationOnDate'] is None:
        data['send_notification_on_date'] = None
    elif payload.get('sendNow') is True and 'sendNotificationOnDate' not in payload:
        data['send_notification_on_date'] = None

    notification.apply(data)
    if target_ids is not None:
        apply_targets(notification, target_ids)
    db.session.commit()

    return success_response(STATUS_CODES.OK, 'Notification updated successfully', notification.to_dict())


@notifications_bp.route('/<notification_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_notification(notification_id):
    """Delete a notification (admin only)"""
    notification = get_notification_or_404(notification_id)
    db.session.delete(notification)
    db.session.commit()

    logger.info('Admin %s deleted notification %s', g.current_user.id, notification_id)
    return success_response(STATUS_CODES.OK, 'Notification deleted successfully', None)
