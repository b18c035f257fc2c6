"""
Socket.IO tests for Baggs real-time transfer updates
"""
from baggs import db
from baggs.models import Transfer, Worker
from baggs.socket_events import socketio
from baggs.utils import generate_token


def connect(app, user):
    return socketio.test_client(app, auth={'token': generate_token(user)})


def events(client, name):
    return [event['args'][0] for event in client.get_received() if event['name'] == name]


class TestHandshake:

    def test_connect_with_token(self, app, customer):
        client = connect(app, customer)

        assert client.is_connected()
        client.disconnect()

    def test_connect_without_token_is_refused(self, app):
        client = socketio.test_client(app)

        assert not client.is_connected()

    def test_connect_with_bad_token_is_refused(self, app):
        client = socketio.test_client(app, auth={'token': 'not-a-jwt'})

        assert not client.is_connected()


class TestTransferRooms:

    def test_socket_status_update_is_broadcast(self, app, customer, make_transfer, make_worker):
        worker = make_worker(is_available=False, status='Assigned')
        transfer = make_transfer(customer, worker_id=worker.id, status='in_progress')
        client = connect(app, customer)
        client.emit('joinTransferRoom', transfer.id)

        client.emit('updateTransferStatus', {'transferId': transfer.id, 'status': 'onTheWay'})

        updates = events(client, 'transferStatusUpdated')
        assert len(updates) == 1
        assert updates[0]['id'] == transfer.id
        assert updates[0]['status'] == 'onTheWay'
        assert db.session.get(Worker, worker.id).status == 'OnTheWay'

    def test_invalid_status_emits_error(self, app, customer, make_transfer):
        transfer = make_transfer(customer)
        client = connect(app, customer)

        client.emit('updateTransferStatus', {'transferId': transfer.id, 'status': 'teleported'})

        errors = events(client, 'error')
        assert errors[0]['status'] == 422
        assert db.session.get(Transfer, transfer.id).status == 'pending'

    def test_stranger_cannot_update(self, app, customer, other_customer, make_transfer):
        transfer = make_transfer(customer)
        client = connect(app, other_customer)

        client.emit('updateTransferStatus', {'transferId': transfer.id, 'status': 'cancelled'})

        errors = events(client, 'error')
        assert errors[0]['status'] == 403
        assert db.session.get(Transfer, transfer.id).status == 'pending'

    def test_http_update_reaches_room(self, app, client, customer, admin_headers, make_transfer):
        transfer = make_transfer(customer)
        watcher = connect(app, customer)
        watcher.emit('joinTransferRoom', transfer.id)

        client.put(f'/api/v1/transfers/{transfer.id}', headers=admin_headers, json={'status': 'cancelled'})

        updates = events(watcher, 'transferStatusUpdated')
        assert [update['status'] for update in updates] == ['cancelled']

    def test_left_room_receives_nothing(self, app, client, customer, admin_headers, make_transfer):
        transfer = make_transfer(customer)
        watcher = connect(app, customer)
        watcher.emit('joinTransferRoom', transfer.id)
        watcher.emit('leaveTransferRoom', transfer.id)

        client.put(f'/api/v1/transfers/{transfer.id}', headers=admin_headers, json={'status': 'cancelled'})

        assert events(watcher, 'transferStatusUpdated') == []

    def test_stranger_cannot_join_room(self, app, client, customer, other_customer, admin_headers,
                                       make_transfer):
        transfer = make_transfer(customer)
        stranger = connect(app, other_customer)

        stranger.emit('joinTransferRoom', transfer.id)
        client.put(f'/api/v1/transfers/{transfer.id}', headers=admin_headers, json={'status': 'cancelled'})

        received = stranger.get_received()
        assert [event for event in received if event['name'] == 'transferStatusUpdated'] == []
        errors = [event['args'][0] for event in received if event['name'] == 'error']
        assert errors[0]['status'] == 403
        assert errors[0]['message'] == 'Not authorized to access this transfer'

    def test_admin_can_join_any_room(self, app, client, customer, admin, admin_headers, make_transfer):
        transfer = make_transfer(customer)
        watcher = connect(app, admin)
        watcher.emit('joinTransferRoom', transfer.id)

        client.put(f'/api/v1/transfers/{transfer.id}', headers=admin_headers, json={'status': 'cancelled'})

        assert [update['status'] for update in events(watcher, 'transferStatusUpdated')] == ['cancelled']

    def test_join_unknown_transfer(self, app, customer):
        client = connect(app, customer)

        client.emit('joinTransferRoom', 'missing')

        assert events(client, 'error')[0]['status'] == 404
