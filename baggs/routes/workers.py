import logging

from flask import Blueprint, g, request

from baggs import db
from baggs.errors import Conflict, NotFound
from baggs.models import Worker
from baggs.responses import STATUS_CODES, success_response
from baggs.utils import apply_sort, json_body, paginate_query, pagination_args, parse_bool, require_auth, require_role
from baggs.validators import Validator

logger = logging.getLogger(__name__)

workers_bp = Blueprint('workers', __name__)

SORTABLE = {
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
    'name': 'name',
    'rating': 'rating',
    'completedJobs': 'completed_jobs',
    'experience': 'experience',
    'status': 'status',
}


def worker_rules(validator, creating=False):
    return (validator
            .string('name', required=creating, max_length=255)
            .email('email', required=creating)
            .string('phone', required=creating, max_length=50)
            .string('identityNumber', required=creating, max_length=100)
            .boolean('isAvailable')
            .choice('status', Worker.STATUSES)
            .choice('role', Worker.ROLES)
            .string('specialization', max_length=255)
            .number('rating', minimum=0, maximum=5)
            .number('completedJobs', minimum=0, integer=True)
            .string_list('skills')
            .string_list('certificates')
            .number('experience', minimum=0)
            .string('preferredLang', max_length=10)
            .string('region', max_length=100)
            .choice('timeFormat', ('12', '24'))
            .string('image', max_length=500))


def ensure_unique(data, worker_id=None):
    for attr, label in (('email', 'Email'), ('identity_number', 'Identity number')):
        value = data.get(attr)
        if not value:
            continue
        column = getattr(Worker, attr)
        if Worker.query.filter(column == value, Worker.id != worker_id).first():
            raise Conflict(f'{label} already in use')


def get_worker_or_404(worker_id):
    worker = db.session.get(Worker, worker_id)
    if not worker:
        raise NotFound(f'Worker not found with id of {worker_id}')
    return worker


def page_links(total, page, limit):
    """Pagination block with optional next/prev page pointers"""
    pagination = {
        'total': total,
        'page': page,
        'limit': limit,
        'pageCount': -(-total // limit),
    }
    if page * limit < total:
        pagination['next'] = {'page': page + 1, 'limit': limit}
    if page > 1:
        pagination['prev'] = {'page': page - 1, 'limit': limit}
    return pagination


@workers_bp.route('', methods=['GET'])
@require_auth
@require_role('admin')
def list_workers():
    """
    List workers with filters (admin only)
    GET /api/v1/workers?name=ali&isAvailable=true&status=Available&page=1&limit=10
    """
    query = Worker.query

    name = request.args.get('name')
    if name:
        query = query.filter(Worker.name.ilike(f'%{name}%'))

    identity_number = request.args.get('identityNumber')
    if identity_number:
        query = query.filter(Worker.identity_number == identity_number)

    phone = request.args.get('phone')
    if phone:
        query = query.filter(Worker.phone.ilike(f'%{phone}%'))

    is_available = parse_bool(request.args.get('isAvailable'))
    if is_available is not None:
        query = query.filter(Worker.is_available.is_(is_available))

    role = request.args.get('role')
    if role:
        query = query.filter(Worker.role == role)

    status = request.args.get('status')
    if status:
        query = query.filter(Worker.status == status)

    page, limit, sort_by, order = pagination_args()
    query = apply_sort(query, Worker, sort_by, order, SORTABLE)
    result = paginate_query(query, page, limit)

    return success_response(
        STATUS_CODES.OK,
        'Workers retrieved successfully',
        [worker.to_dict() for worker in result['items']],
        count=len(result['items']),
        pagination=page_links(result['total'], result['page'], result['per_page']),
    )


@workers_bp.route('/<worker_id>', methods=['GET'])
@require_auth
@require_role('admin')
def get_worker(worker_id):
    """Get a single worker (admin only)"""
    worker = get_worker_or_404(worker_id)
    return success_response(STATUS_CODES.OK, 'Worker retrieved successfully', worker.to_dict())


@workers_bp.route('', methods=['POST'])
@require_auth
@require_role('admin')
def create_worker():
    """
    Create a worker (admin only)
    POST /api/v1/workers
    Body: { "name", "email", "phone", "password", "identityNumber", ... }
    """
    validator = worker_rules(Validator(json_body()), creating=True)
    validator.string('password', required=True, min_length=6, strip=False)
    data = validator.validate()

    ensure_unique(data)

    password = data.pop('password')
    worker = Worker(**data)
    worker.set_password(password)
    db.session.add(worker)
    db.session.commit()

    logger.info('Admin %s created worker %s', g.current_user.id, worker.id)
    return success_response(STATUS_CODES.CREATED, 'Worker created successfully', worker.to_dict())


@workers_bp.route('/<worker_id>', methods=['PUT'])
@require_auth
@require_role('admin')
def update_worker(worker_id):
    """
    Update a worker (admin only)
    PUT /api/v1/workers/:id

    A password in the body is ignored.
    """
    payload = json_body()
    payload.pop('password', None)
    data = worker_rules(Validator(payload)).validate()

    worker = get_worker_or_404(worker_id)
    ensure_unique(data, worker.id)
    worker.apply(data)
    db.session.commit()

    return success_response(STATUS_CODES.OK, 'Worker updated successfully', worker.to_dict())


@workers_bp.route('/<worker_id>', methods=['DELETE'])
@require_auth
@require_role('admin')
def delete_worker(worker_id):
    """Delete a worker (admin only)"""
    worker = get_worker_or_404(worker_id)
    db.session.delete(worker)
    db.session.commit()

    logger.info('Admin %s deleted worker %s', g.current_user.id, worker_id)
    return success_response(STATUS_CODES.OK, 'Worker deleted successfully', {})
