import logging
import math
from datetime import datetime, time, timedelta

from flask import Blueprint, g, request
from sqlalchemy import String, cast, or_, update

from baggs import db
from baggs.errors import NotFound, ValidationError
from baggs.lifecycle import update_transfer as apply_transfer_update
from baggs.models import Complaint, Transfer, Worker, isoformat, utcnow
from baggs.policy import authorize
from baggs.responses import STATUS_CODES, success_response
from baggs.socket_events import broadcast_transfer_update
from baggs.utils import apply_sort, json_body, paginate_query, pagination_args, require_auth, require_role
from baggs.validators import Validator, parse_datetime

logger = logging.getLogger(__name__)

transfers_bp = Blueprint('transfers', __name__)

SORTABLE = {
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
    'status': 'status',
    'paymentStatus': 'payment_status',
    'totalAmount': 'total_amount',
    'deliveryDate': 'delivery_date',
    'pickUpDate': 'pick_up_date',
}

MIN_IMAGES_ON_CREATE = 3


def clean_items(validator, min_images, required=False):
    """Validate the items array; each item is {name, weight, images[], isBreakable}"""
    items = validator.data.get('items')
    if items is None:
        if required:
            validator.error('items', 'At least one item is required')
        return validator
    if not isinstance(items, list):
        return validator.error('items', 'Items must be an array')
    if not items:
        return validator.error('items', 'At least one item is required')

    cleaned = []
    for index, item in enumerate(items):
        prefix = f'items[{index}]'
        if not isinstance(item, dict):
            validator.error(prefix, 'Item must be an object')
            continue

        name = item.get('name')
        if not isinstance(name, str) or not name.strip():
            validator.error(f'{prefix}.name', 'Item name is required')
        elif len(name.strip()) > 100:
            validator.error(f'{prefix}.name', 'Item name cannot be more than 100 characters')

        weight = item.get('weight')
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            validator.error(f'{prefix}.weight', 'Item weight must be a number')
        elif isinstance(weight, float) and not math.isfinite(weight):
            validator.error(f'{prefix}.weight', 'Item weight must be a finite number')
        elif weight < 0:
            validator.error(f'{prefix}.weight', 'Item weight cannot be negative')

        images = item.get('images')
        if not isinstance(images, list) or not all(isinstance(url, str) and url.strip() for url in images):
            validator.error(f'{prefix}.images', 'Images must be an array of non-empty strings')
            images = []
        elif len(images) < min_images:
            validator.error(f'{prefix}.images', f'Each item must include at least {min_images} images')

        is_breakable = item.get('isBreakable', False)
        if not isinstance(is_breakable, bool):
            validator.error(f'{prefix}.isBreakable', 'isBreakable must be a boolean')

        cleaned.append({
            'name': name.strip() if isinstance(name, str) else name,
            'weight': weight,
            'images': [url.strip() for url in images],
            'isBreakable': is_breakable,
        })

    validator.cleaned['items'] = cleaned
    return validator


def clean_rating(validator):
    rating = validator.data.get('rating')
    if rating is None:
        return validator
    if not isinstance(rating, dict):
        return validator.error('rating', 'Rating must be an object')

    value = rating.get('rating')
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 1 <= value <= 5:
        validator.error('rating.rating', 'Rating must be between 1 and 5')
    comment = rating.get('comment')
    if comment is not None and (not isinstance(comment, str) or len(comment) > 500):
        validator.error('rating.comment', 'Comment cannot be more than 500 characters')

    validator.cleaned['rating'] = {
        'rating': value,
        'comment': comment,
        'createdAt': isoformat(utcnow()),
    }
    return validator


def validate_transfer_create(payload):
    validator = (Validator(payload)
                 .number('totalAmount', required=True, minimum=0)
                 .date('deliveryDate', required=True)
                 .string('deliveryTime', required=True, max_length=20)
                 .string('from', attr='from_location', required=True, max_length=500)
                 .string('to', attr='to_location', required=True, max_length=500)
                 .string('flightGate', max_length=50)
                 .string('flightNumber', max_length=50)
                 .date('pickUpDate', required=True)
                 .string('pickUpTime', required=True, max_length=20)
                 .choice('paymentStatus', Transfer.PAYMENT_STATUSES))
    clean_items(validator, MIN_IMAGES_ON_CREATE, required=True)
    return validator.validate()


def validate_transfer_update(payload, require_status=False):
    """Validated change set for a transfer update, keyed by model attribute"""
    validator = (Validator(payload)
                 .choice('status', Transfer.STATUSES, required=require_status)
                 .choice('paymentStatus', Transfer.PAYMENT_STATUSES)
                 .reference('workerId', Worker, label='worker ID')
                 .reference('complaintId', Complaint, label='complaint ID')
                 .number('totalAmount', minimum=0)
                 .string('from', attr='from_location', max_length=500)
                 .string('to', attr='to_location', max_length=500)
                 .string('flightGate', max_length=50)
                 .string('flightNumber', max_length=50)
                 .date('deliveryDate')
                 .string('deliveryTime', max_length=20)
                 .date('pickUpDate')
                 .string('pickUpTime', max_length=20))
    clean_items(validator, min_images=1)
    clean_rating(validator)
    return validator.validate()


def get_transfer_or_404(transfer_id):
    transfer = db.session.get(Transfer, transfer_id)
    if not transfer:
        raise NotFound('Transfer not found')
    return transfer


def _date_arg(name):
    value = request.args.get(name)
    if not value:
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValidationError(errors=[{'field': name, 'message': f'{name} must be a valid ISO 8601 date'}])
    return parsed


def percent_change(today_value, yesterday_value):
    if yesterday_value == 0:
        return '0%' if today_value == 0 else '100%'
    return f'{(today_value - yesterday_value) / yesterday_value * 100:.2f}%'


@transfers_bp.route('', methods=['GET'])
@require_auth
@require_role('admin')
def list_transfers():
    """
    List transfers with filtering (admin only)
    GET /api/v1/transfers?status=pending&paymentStatus=paid&search=suitcase
        &scheduledDate[from]=2024-01-01&scheduledDate[to]=2024-01-31
    """
    query = Transfer.query

    status = request.args.get('status')
    if status:
        query = query.filter(Transfer.status == status)

    payment_status = request.args.get('paymentStatus')
    if payment_status:
        query = query.filter(Transfer.payment_status == payment_status)

    date_from = _date_arg('scheduledDate[from]')
    if date_from:
        query = query.filter(Transfer.delivery_date >= date_from)
    date_to = _date_arg('scheduledDate[to]')
    if date_to:
        query = query.filter(Transfer.delivery_date <= date_to)

    search = request.args.get('search', '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(
            cast(Transfer.items, String).ilike(pattern),
            Transfer.from_location.ilike(pattern),
            Transfer.to_location.ilike(pattern),
        ))

    page, limit, sort_by, order = pagination_args()
    query = apply_sort(query, Transfer, sort_by, order, SORTABLE)
    result = paginate_query(query, page, limit)

    return success_response(
        STATUS_CODES.OK,
        'Transfers retrieved successfully',
        [transfer.to_dict(include_relationships=True) for transfer in result['items']],
        pagination={'total': result['total'], 'page': result['page'], 'pages': result['pages']},
    )


@transfers_bp.route('/my-transfers', methods=['GET'])
@require_auth
def my_transfers():
    """Transfers owned by the current user, newest first"""
    transfers = (Transfer.query
                 .filter(Transfer.user_id == g.current_user.id)
                 .order_by(Transfer.created_at.desc())
                 .all())
    return success_response(
        STATUS_CODES.OK,
        'Your transfers retrieved successfully',
        [transfer.to_dict(include_relationships=True) for transfer in transfers],
    )


@transfers_bp.route('/stats', methods=['GET'])
@require_auth
@require_role('admin')
def transfer_stats():
    """
    Today's, current and cancelled transfer counts with change vs yesterday (admin only)
    GET /api/v1/transfers/stats
    """
    today = datetime.combine(utcnow().date(), time.min)
    tomorrow = today + timedelta(days=1)
    yesterday = today - timedelta(days=1)

    def count(*criteria):
        return Transfer.query.filter(*criteria).count()

    def created_between(start, end):
        return (Transfer.created_at >= start, Transfer.created_at < end)

    current = Transfer.status.in_(Transfer.CURRENT_STATUSES)
    cancelled = Transfer.status == 'cancelled'

    todays = count(*created_between(today, tomorrow))
    yesterdays = count(*created_between(yesterday, today))
    current_now = count(current)
    current_yesterday = count(current, *created_between(yesterday, today))
    cancelled_today = count(cancelled, *created_between(today, tomorrow))
    cancelled_yesterday = count(cancelled, *created_between(yesterday, today))

    return success_response(STATUS_CODES.OK, 'Transfer statistics retrieved successfully', {
        'todaysTransfers': todays,
        'todaysTransfersChange': percent_change(todays, yesterdays),
        'currentTransfers': current_now,
        'currentTransfersChange': percent_change(current_now, current_yesterday),
        'cancelledTransfers': cancelled_today,
        'cancelledTransfersChange': percent_change(cancelled_today, cancelled_yesterday),
    })


@transfers_bp.route('/<transfer_id>', methods=['GET'])
@require_auth
def get_transfer(transfer_id):
    """Get a single transfer (owner or admin)"""
    transfer = get_transfer_or_404(transfer_id)
    authorize(g.current_user, 'transfer:read', transfer)
    return success_response(
        STATUS_CODES.OK, 'Transfer retrieved successfully', transfer.to_dict(include_relationships=True)
    )


@transfers_bp.route('', methods=['POST'])
@require_auth
def create_transfer():
    """
    Create a transfer for the current user
    POST /api/v1/transfers
    Body: {
        "items": [{"name": "Suitcase", "weight": 20, "images": ["a.jpg", "b.jpg", "c.jpg"]}],
        "totalAmount": 50,
        "from": "Terminal 1",
        "to": "Hotel Central",
        "deliveryDate": "2024-01-15T09:00:00Z",
        "deliveryTime": "09:00",
        "pickUpDate": "2024-01-15T07:00:00Z",
        "pickUpTime": "07:00"
    }

    New transfers always start as pending.
    """
    data = validate_transfer_create(json_body())

    transfer = Transfer(user_id=g.current_user.id, status='pending', **data)
    db.session.add(transfer)
    db.session.commit()

    logger.info('User %s created transfer %s', g.current_user.id, transfer.id)
    return success_response(STATUS_CODES.CREATED, 'Transfer created successfully', transfer.to_dict())


@transfers_bp.route('/<transfer_id>', methods=['PUT'])
@require_auth
def update_transfer(transfer_id):
    """
    Update a transfer (owner or admin)
    PUT /api/v1/transfers/:id
    Body: { "status": "onTheWay", "workerId": "<uuid>", "paymentStatus": "paid", ... }

    - A new workerId assigns the worker and moves the transfer to in_progress
    - Status changes notify the owner and update worker availability
    """
    changes = validate_transfer_update(json_body())
    transfer = apply_transfer_update(transfer_id, changes, g.current_user)
    broadcast_transfer_update(transfer)

    return success_response(
        STATUS_CODES.OK, 'Transfer updated successfully', transfer.to_dict(include_relationships=True)
    )


@transfers_bp.route('/<transfer_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_transfer(transfer_id):
    """Delete a transfer (admin only)"""
    transfer = get_transfer_or_404(transfer_id)

    # An active transfer holds its worker; release it
    if transfer.worker_id and transfer.status in ('in_progress', 'onTheWay'):
        db.session.execute(
            update(Worker)
            .where(Worker.id == transfer.worker_id)
            .values(is_available=True, status='Available'),
            execution_options={'synchronize_session': False},
        )
    db.session.delete(transfer)
    db.session.commit()

    logger.info('Admin %s deleted transfer %s', g.current_user.id, transfer_id)
    return success_response(STATUS_CODES.OK, 'Transfer deleted successfully', {})
