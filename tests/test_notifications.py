"""
Notification tests for Baggs
Tests audience rules, visibility, read receipts and admin management
"""
from datetime import datetime, timedelta

import pytest

from baggs import db
from baggs.models import Notification, utcnow

SEND_OPTIONS_MESSAGE = (
    'You must either set "sendNow" to true or provide "sendNotificationOnDate", '
    'but not both or neither.'
)


@pytest.fixture
def make_notification(admin):
    """Factory for stored notifications"""
    def _make_notification(targets=None, **fields):
        fields.setdefault('title', 'Heads up')
        fields.setdefault('message', 'Something happened')
        fields.setdefault('created_by_id', admin.id)
        fields.setdefault('send_now', True)
        if targets is not None:
            notification = Notification.for_users([user.id for user in targets], **fields)
        else:
            fields.setdefault('is_global', True)
            notification = Notification(**fields)
        db.session.add(notification)
        db.session.commit()
        return notification
    return _make_notification


class TestCreateNotification:

    def test_create_global(self, client, admin, admin_headers):
        response = client.post('/api/v1/notifications', headers=admin_headers, json={
            'title': 'Maintenance',
            'message': 'Service unavailable tonight',
            'type': 'warning',
            'isGlobal': True,
            'sendNow': True,
        })

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['isGlobal'] is True
        assert data['createdBy'] == admin.id
        assert data['expiresAt'] is not None

    def test_create_targeted(self, client, customer, admin_headers):
        response = client.post('/api/v1/notifications', headers=admin_headers, json={
            'title': 'For you',
            'message': 'Personal note',
            'targetUsers': [customer.id],
            'sendNotificationOnDate': '2030-01-01T09:00:00Z',
        })

        assert response.status_code == 201
        assert response.get_json()['data']['targetUsers'] == [customer.id]

    @pytest.mark.parametrize('audience', [
        {},
        {'isGlobal': False},
        {'isGlobal': True, 'targetUsers': ['placeholder']},
    ])
    def test_audience_must_be_exactly_one(self, client, customer, admin_headers, audience):
        if audience.get('targetUsers'):
            audience = dict(audience, targetUsers=[customer.id])
        body = dict({'title': 'T', 'message': 'M', 'sendNow': True}, **audience)

        response = client.post('/api/v1/notifications', headers=admin_headers, json=body)

        assert response.status_code == 422
        assert 'targetUsers' in [error['field'] for error in response.get_json()['errors']]
        assert Notification.query.count() == 0

    @pytest.mark.parametrize('send_options', [
        {},
        {'sendNow': False},
        {'sendNow': True, 'sendNotificationOnDate': '2030-01-01T09:00:00Z'},
    ])
    def test_send_options_must_be_exactly_one(self, client, admin_headers, send_options):
        body = dict({'title': 'T', 'message': 'M', 'isGlobal': True}, **send_options)

        response = client.post('/api/v1/notifications', headers=admin_headers, json=body)

        assert response.status_code == 422
        assert {'field': 'sendNow', 'message': SEND_OPTIONS_MESSAGE} in response.get_json()['errors']
        assert Notification.query.count() == 0

    def test_unknown_target_user(self, client, admin_headers):
        response = client.post('/api/v1/notifications', headers=admin_headers, json={
            'title': 'T',
            'message': 'M',
            'targetUsers': ['00000000-0000-0000-0000-000000000000'],
            'sendNow': True,
        })

        assert response.status_code == 422

    def test_customer_cannot_create(self, client, customer_headers):
        response = client.post('/api/v1/notifications', headers=customer_headers, json={
            'title': 'T', 'message': 'M', 'isGlobal': True, 'sendNow': True,
        })

        assert response.status_code == 403


class TestMyNotifications:

    def test_visible_unread_newest_first(self, client, customer, other_customer, make_notification,
                                         customer_headers):
        now = utcnow()
        older = make_notification(title='older', created_at=now - timedelta(hours=2))
        newer = make_notification(targets=[customer], title='newer', created_at=now - timedelta(hours=1))
        read = make_notification(title='read')
        read.mark_read(customer.id)
        db.session.commit()
        make_notification(title='expired', expires_at=now - timedelta(minutes=1))
        make_notification(targets=[other_customer], title='not mine')

        response = client.get('/api/v1/notifications/my-notifications?read=false', headers=customer_headers)

        data = response.get_json()['data']
        assert [n['title'] for n in data] == ['newer', 'older']
        assert all(n['isRead'] is False for n in data)
        assert {older.id, newer.id} == {n['id'] for n in data}

    def test_read_filter(self, client, customer, make_notification, customer_headers):
        read = make_notification(title='read')
        make_notification(title='unread')
        read.mark_read(customer.id)
        db.session.commit()

        response = client.get('/api/v1/notifications/my-notifications?read=true', headers=customer_headers)

        assert [n['title'] for n in response.get_json()['data']] == ['read']

    def test_type_filter(self, client, make_notification, customer_headers):
        make_notification(title='info', type='info')
        make_notification(title='warning', type='warning')

        response = client.get('/api/v1/notifications/my-notifications?type=warning', headers=customer_headers)

        assert [n['title'] for n in response.get_json()['data']] == ['warning']


class TestReadReceipts:

    def test_mark_read_is_idempotent(self, client, customer, make_notification, customer_headers):
        notification = make_notification()
        url = f'/api/v1/notifications/{notification.id}/read'

        first = client.put(url, headers=customer_headers)
        second = client.put(url, headers=customer_headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.get_json()['message'] == 'Notification marked as read successfully'
        assert len(db.session.get(Notification, notification.id).reads) == 1

    def test_mark_read_requires_visibility(self, client, other_customer, make_notification, customer_headers):
        notification = make_notification(targets=[other_customer])

        response = client.put(f'/api/v1/notifications/{notification.id}/read', headers=customer_headers)

        assert response.status_code == 403

    def test_expired_notification_cannot_be_marked(self, client, make_notification, customer_headers):
        notification = make_notification(expires_at=datetime(2000, 1, 1))

        response = client.put(f'/api/v1/notifications/{notification.id}/read', headers=customer_headers)

        assert response.status_code == 403

    def test_mark_all_read(self, client, customer, other_customer, make_notification, customer_headers):
        make_notification()
        make_notification(targets=[customer])
        make_notification(targets=[other_customer])

        first = client.patch('/api/v1/notifications/mark-all-read', headers=customer_headers)
        second = client.patch('/api/v1/notifications/mark-all-read', headers=customer_headers)

        assert first.get_json()['message'] == 'All notifications marked as read'
        assert first.get_json()['data'] == {'marked': 2}
        assert second.get_json()['data'] == {'marked': 0}

        unread = client.get('/api/v1/notifications/my-notifications?read=false', headers=customer_headers)
        assert unread.get_json()['data'] == []


class TestNotificationAdmin:

    def test_get_requires_audience(self, client, other_customer, make_notification, customer_headers,
                                   admin_headers):
        notification = make_notification(targets=[other_customer])

        denied = client.get(f'/api/v1/notifications/{notification.id}', headers=customer_headers)
        allowed = client.get(f'/api/v1/notifications/{notification.id}', headers=admin_headers)

        assert denied.status_code == 403
        assert denied.get_json()['message'] == 'Not authorized to access this notification'
        assert allowed.status_code == 200

    def test_list_filters(self, client, customer, make_notification, admin_headers):
        make_notification(title='Global update')
        make_notification(targets=[customer], title='Targeted update')

        response = client.get('/api/v1/notifications?isGlobal=false&search=update', headers=admin_headers)

        body = response.get_json()
        assert [n['title'] for n in body['data']] == ['Targeted update']
        assert body['pagination'] == {'total': 1, 'page': 1, 'pages': 1}

    def test_update_to_targeted_requires_targets(self, client, make_notification, admin_headers):
        notification = make_notification()

        response = client.put(f'/api/v1/notifications/{notification.id}', headers=admin_headers,
                              json={'isGlobal': False})

        assert response.status_code == 422
        assert db.session.get(Notification, notification.id).is_global is True

    def test_update_to_targeted(self, client, customer, make_notification, admin_headers):
        notification = make_notification()

        response = client.put(f'/api/v1/notifications/{notification.id}', headers=admin_headers,
                              json={'isGlobal': False, 'targetUsers': [customer.id], 'title': 'Renamed'})

        data = response.get_json()['data']
        assert data['isGlobal'] is False
        assert data['targetUsers'] == [customer.id]
        assert data['title'] == 'Renamed'

    def test_update_cannot_add_date_to_send_now(self, client, make_notification, admin_headers):
        notification = make_notification()

        response = client.put(f'/api/v1/notifications/{notification.id}', headers=admin_headers,
                              json={'sendNotificationOnDate': '2030-01-01T09:00:00Z'})

        assert response.status_code == 422
        assert {'field': 'sendNow', 'message': SEND_OPTIONS_MESSAGE} in response.get_json()['errors']
        stored = db.session.get(Notification, notification.id)
        assert stored.send_now is True
        assert stored.send_notification_on_date is None

    def test_update_to_scheduled(self, client, make_notification, admin_headers):
        notification = make_notification()

        response = client.put(f'/api/v1/notifications/{notification.id}', headers=admin_headers,
                              json={'sendNow': False, 'sendNotificationOnDate': '2030-01-01T09:00:00Z'})

        data = response.get_json()['data']
        assert data['sendNow'] is False
        assert data['sendNotificationOnDate'] == '2030-01-01T09:00:00'

    def test_update_to_send_now_drops_date(self, client, customer, make_notification, admin_headers):
        notification = make_notification(targets=[customer], send_now=False,
                                         send_notification_on_date=datetime(2030, 1, 1, 9))

        response = client.put(f'/api/v1/notifications/{notification.id}', headers=admin_headers,
                              json={'sendNow': True})

        assert response.status_code == 200
        assert response.get_json()['data']['sendNotificationOnDate'] is None

    def test_update_to_global_drops_targets(self, client, customer, make_notification, admin_headers):
        notification = make_notification(targets=[customer])

        response = client.put(f'/api/v1/notifications/{notification.id}', headers=admin_headers,
                              json={'isGlobal': True})

        data = response.get_json()['data']
        assert response.status_code == 200
        assert data['isGlobal'] is True
        assert data['targetUsers'] == []

    def test_update_cannot_target_a_global_notification(self, client, customer, make_notification,
                                                        admin_headers):
        notification = make_notification()

        response = client.put(f'/api/v1/notifications/{notification.id}', headers=admin_headers,
                              json={'targetUsers': [customer.id]})

        assert response.status_code == 422
        assert 'targetUsers' in [error['field'] for error in response.get_json()['errors']]
        stored = db.session.get(Notification, notification.id)
        assert stored.is_global is True
        assert stored.targets == []

    def test_delete(self, client, customer, make_notification, admin_headers):
        notification = make_notification()
        notification.mark_read(customer.id)
        db.session.commit()
        notification_id = notification.id

        response = client.delete(f'/api/v1/notifications/{notification_id}', headers=admin_headers)

        assert response.status_code == 200
        assert db.session.get(Notification, notification_id) is None

    def test_unknown_notification(self, client, admin_headers):
        response = client.get('/api/v1/notifications/missing', headers=admin_headers)

        assert response.status_code == 404
        assert response.get_json()['message'] == 'Notification not found with id of missing'
