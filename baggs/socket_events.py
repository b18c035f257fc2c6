"""
Socket.IO event handlers for Baggs real-time features.
- Token-authenticated handshake
- Per-transfer rooms
- Transfer status updates and broadcasts
"""
import logging

from flask import request, session
from flask_socketio import SocketIO, emit, join_room, leave_room

from baggs import db
from baggs.errors import ApiError, NotFound, Unauthorized
from baggs.lifecycle import update_transfer
from baggs.models import Transfer, User
from baggs.policy import authorize
from baggs.utils import load_identity

logger = logging.getLogger(__name__)

socketio = SocketIO()

STATUS_UPDATED_EVENT = 'transferStatusUpdated'


def transfer_room(transfer_id):
    return f'transfer-{transfer_id}'


def broadcast_transfer_update(transfer):
    """Push the populated transfer to everyone watching it"""
    socketio.emit(
        STATUS_UPDATED_EVENT,
        transfer.to_dict(include_relationships=True),
        room=transfer_room(transfer.id),
    )


@socketio.on('connect')
def handle_connect(auth=None):
    token = auth.get('token') if isinstance(auth, dict) else None
    if not token:
        logger.warning('Socket %s refused: no token', request.sid)
        raise ConnectionRefusedError('Authentication error')
    try:
        user = load_identity(token)
    except Unauthorized as e:
        logger.warning('Socket %s refused: %s', request.sid, e.message)
        raise ConnectionRefusedError('Authentication error')

    session['user_id'] = user.id
    logger.info('Socket %s connected as user %s', request.sid, user.id)


@socketio.on('disconnect')
def handle_disconnect(*args):
    logger.info('Socket %s disconnected', request.sid)


def current_actor():
    user_id = session.get('user_id')
    actor = db.session.get(User, user_id) if user_id else None
    if actor is None:
        raise Unauthorized('User not found')
    return actor


def emit_error(event, e):
    db.session.rollback()
    logger.warning('%s from %s failed: %s', event, request.sid, e.message)
    emit('error', {'status': e.status_code, 'message': e.message, 'errors': e.errors})


@socketio.on('joinTransferRoom')
def handle_join_transfer_room(transfer_id):
    """Watch a transfer; only its owner or an admin may join"""
    try:
        actor = current_actor()
        transfer = db.session.get(Transfer, transfer_id) if isinstance(transfer_id, str) and transfer_id else None
        if transfer is None:
            raise NotFound('Transfer not found')
        authorize(actor, 'transfer:read', transfer)
    except ApiError as e:
        emit_error('joinTransferRoom', e)
        return

    join_room(transfer_room(transfer.id))
    logger.debug('Socket %s joined %s', request.sid, transfer_room(transfer.id))


@socketio.on('leaveTransferRoom')
def handle_leave_transfer_room(transfer_id):
    if transfer_id:
        leave_room(transfer_room(transfer_id))


@socketio.on('updateTransferStatus')
def handle_update_transfer_status(data):
    """
    Change a transfer's status through the lifecycle handler.
    data = { transferId, status }
    """
    from baggs.routes.transfers import validate_transfer_update

    data = data if isinstance(data, dict) else {}
    try:
        actor = current_actor()
        changes = validate_transfer_update({'status': data.get('status')}, require_status=True)
        transfer = update_transfer(data.get('transferId'), changes, actor)
    except ApiError as e:
        emit_error('updateTransferStatus', e)
        return

    broadcast_transfer_update(transfer)
