import logging

from flask import Blueprint, current_app, g, request
from sqlalchemy import func, or_

from baggs import db
from baggs.errors import BadRequest, Conflict, NotFound, ValidationError
from baggs.models import Complaint, ComplaintResponse, Notification, Transfer, User, Worker, utcnow
from baggs.policy import authorize
from baggs.responses import STATUS_CODES, success_response
from baggs.utils import apply_sort, json_body, paginate_query, pagination_args, require_auth, require_role
from baggs.validators import Validator, parse_datetime

logger = logging.getLogger(__name__)

complaints_bp = Blueprint('complaints', __name__)

SORTABLE = {
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
    'status': 'status',
    'priority': 'priority',
    'category': 'category',
    'title': 'title',
}


def get_complaint_or_404(complaint_id):
    complaint = db.session.get(Complaint, complaint_id)
    if not complaint:
        raise NotFound(f'Complaint not found with id of {complaint_id}')
    return complaint


def status_change_notification(complaint, status, actor):
    ref = complaint.id[:6]
    return Notification.for_users(
        [complaint.user_id],
        title=f'Complaint Update: #{ref}',
        message=f'Your complaint with ID #{ref} has been updated to {status}.',
        type='info',
        created_by_id=actor.id,
        expires_at=utcnow() + current_app.config['STATUS_NOTIFICATION_TTL'],
        send_now=True,
        redirect_to=f'/my-complaints/{complaint.id}',
    )


def _date_arg(name):
    value = request.args.get(name)
    if not value:
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValidationError(errors=[{'field': name, 'message': f'{name} must be a valid ISO 8601 date'}])
    return parsed


@complaints_bp.route('', methods=['GET'])
@require_auth
@require_role('admin')
def list_complaints():
    """
    List complaints with filtering (admin only)
    GET /api/v1/complaints?status=pending&priority=high&category=service&search=late
        &createdAt[from]=2024-01-01&createdAt[to]=2024-01-31
    """
    query = Complaint.query

    for arg, column in (
        ('status', Complaint.status),
        ('priority', Complaint.priority),
        ('category', Complaint.category),
        ('assignedToId', Complaint.assigned_to_id),
        ('relatedWorkerId', Complaint.related_worker_id),
    ):
        value = request.args.get(arg)
        if value:
            query = query.filter(column == value)

    created_from = _date_arg('createdAt[from]')
    if created_from:
        query = query.filter(Complaint.created_at >= created_from)
    created_to = _date_arg('createdAt[to]')
    if created_to:
        query = query.filter(Complaint.created_at <= created_to)

    search = request.args.get('search', '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(Complaint.title.ilike(pattern), Complaint.description.ilike(pattern)))

    page, limit, sort_by, order = pagination_args()
    query = apply_sort(query, Complaint, sort_by, order, SORTABLE)
    result = paginate_query(query, page, limit)

    return success_response(
        STATUS_CODES.OK,
        'Complaints retrieved successfully',
        [complaint.to_dict(include_relationships=True) for complaint in result['items']],
        pagination={'total': result['total'], 'page': result['page'], 'pages': result['pages']},
    )


@complaints_bp.route('/my-complaints', methods=['GET'])
@require_auth
def my_complaints():
    """Complaints filed by the current user, newest first"""
    complaints = (Complaint.query
                  .filter(Complaint.user_id == g.current_user.id)
                  .order_by(Complaint.created_at.desc())
                  .all())
    return success_response(
        STATUS_CODES.OK,
        'Your complaints retrieved successfully',
        [complaint.to_dict() for complaint in complaints],
    )


@complaints_bp.route('/stats', methods=['GET'])
@require_auth
@require_role('admin')
def complaint_stats():
    """Complaint counts by status (admin only)"""
    rows = db.session.query(Complaint.status, func.count(Complaint.id)).group_by(Complaint.status).all()
    counts = {status: 0 for status in Complaint.STATUSES}
    counts.update({status: total for status, total in rows})

    data = {'total': sum(counts.values())}
    data.update(counts)
    return success_response(STATUS_CODES.OK, 'Complaint statistics retrieved successfully', data)


@complaints_bp.route('/<complaint_id>', methods=['GET'])
@require_auth
def get_complaint(complaint_id):
    """Get a single complaint (owner or admin)"""
    complaint = get_complaint_or_404(complaint_id)
    authorize(g.current_user, 'complaint:read', complaint)
    return success_response(
        STATUS_CODES.OK,
        'Complaint details retrieved successfully',
        complaint.to_dict(include_relationships=True),
    )


@complaints_bp.route('', methods=['POST'])
@require_auth
def create_complaint():
    """
    File a complaint about one of your transfers (customers only)
    POST /api/v1/complaints
    Body: {
        "title": "Late delivery",
        "description": "...",
        "category": "service",
        "priority": "high",
        "transferId": "<uuid>",
        "attachments": ["https://..."]
    }
    """
    data = (Validator(json_body())
            .string('title', required=True, max_length=200)
            .string('description', required=True, max_length=2000)
            .choice('category', Complaint.CATEGORIES, required=True)
            .choice('priority', Complaint.PRIORITIES)
            .reference('transferId', Transfer, required=True, label='transfer ID')
            .string_list('attachments')
            .validate())

    actor = g.current_user
    authorize(actor, 'complaint:create')
    transfer = db.session.get(Transfer, data['transfer_id'])
    authorize(actor, 'complaint:file-for-transfer', transfer)
    if transfer.complaint_id and db.session.get(Complaint, transfer.complaint_id) is not None:
        raise Conflict('A complaint has already been filed for this transfer')

    complaint = Complaint(user_id=actor.id, status='pending', **data)
    db.session.add(complaint)
    db.session.flush()
    transfer.complaint_id = complaint.id
    db.session.commit()

    logger.info('User %s filed complaint %s on transfer %s', actor.id, complaint.id, transfer.id)
    return success_response(STATUS_CODES.CREATED, 'Complaint created successfully', complaint.to_dict())


@complaints_bp.route('/<complaint_id>/responses', methods=['POST'])
@require_auth
def add_response(complaint_id):
    """
    Add a message to the complaint thread (owner or admin)
    POST /api/v1/complaints/:id/responses
    Body: { "message": "...", "attachments": [] }

    - Admin reply on a pending complaint moves it to in_progress
    - Customer reply on an in_progress complaint moves it back to pending
    - Closed complaints accept no replies
    """
    data = (Validator(json_body())
            .string('message', required=True, max_length=1000)
            .string_list('attachments')
            .validate())

    actor = g.current_user
    complaint = get_complaint_or_404(complaint_id)
    authorize(actor, 'complaint:respond', complaint)

    if complaint.is_closed:
        raise BadRequest('Cannot respond to a closed complaint')

    responder_role = 'admin' if actor.is_admin else 'customer'
    complaint.responses.append(ComplaintResponse(
        message=data['message'],
        responder_id=actor.id,
        responder_role=responder_role,
        attachments=data.get('attachments', []),
    ))

    if responder_role == 'admin' and complaint.status == 'pending':
        complaint.status = 'in_progress'
    elif responder_role == 'customer' and complaint.status == 'in_progress':
        complaint.status = 'pending'

    db.session.commit()

    return success_response(
        STATUS_CODES.OK, 'Response added successfully', complaint.to_dict(include_relationships=True)
    )


@complaints_bp.route('/<complaint_id>', methods=['PUT'])
@require_auth
@require_role('admin')
def update_complaint(complaint_id):
    """
    Update a complaint (admin only)
    PUT /api/v1/complaints/:id
    Body: { "status": "closed", "resolution": "Refunded", "assignedToId": "<uuid>", ... }

    Closing stamps closedAt and closedByAdminId and cannot be undone.
    Status changes notify the complaint owner.
    """
    data = (Validator(json_body())
            .string('title', max_length=200)
            .string('description', max_length=2000)
            .choice('category', Complaint.CATEGORIES)
            .choice('priority', Complaint.PRIORITIES)
            .choice('status', Complaint.STATUSES)
            .reference('assignedToId', User, attr='assigned_to_id', label='assigned to ID')
            .reference('relatedWorkerId', Worker, label='related worker ID')
            .string('resolution', max_length=1000)
            .string_list('attachments')
            .validate())

    actor = g.current_user
    complaint = get_complaint_or_404(complaint_id)

    new_status = data.get('status')
    status_changed = new_status is not None and new_status != complaint.status
    if status_changed and complaint.is_closed:
        raise BadRequest('Cannot change the status of a closed complaint')
    if not status_changed:
        data.pop('status', None)

    if status_changed and new_status == 'closed':
        data['closed_at'] = utcnow()
        data['closed_by_admin_id'] = actor.id

    complaint.apply(data)
    if status_changed:
        db.session.add(status_change_notification(complaint, new_status, actor))
    db.session.commit()

    if status_changed:
        logger.info('Admin %s moved complaint %s to %s', actor.id, complaint.id, new_status)
    return success_response(
        STATUS_CODES.OK, 'Complaint updated successfully', complaint.to_dict(include_relationships=True)
    )


@complaints_bp.route('/<complaint_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_complaint(complaint_id):
    """Delete a complaint (admin only)"""
    complaint = get_complaint_or_404(complaint_id)

    Transfer.query.filter(Transfer.complaint_id == complaint.id).update(
        {'complaint_id': None}, synchronize_session=False
    )
    db.session.delete(complaint)
    db.session.commit()

    logger.info('Admin %s deleted complaint %s', g.current_user.id, complaint_id)
    return success_response(STATUS_CODES.OK, 'Complaint deleted successfully', None)
