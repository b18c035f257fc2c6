"""
Authentication tests for Baggs
Tests registration, login, token verification and refresh
"""
from datetime import datetime, timedelta, timezone

import jwt

from baggs import db
from baggs.models import User


class TestRegistration:
    """Test customer self-registration"""

    def test_register_customer_success(self, client):
        response = client.post('/api/v1/auth/register', json={
            'name': 'New Customer',
            'email': 'New@Example.com',
            'phone': '555-0001',
            'password': 'secret123',
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body['success'] is True
        assert body['message'] == 'User registered successfully'
        assert body['data']['access_token']
        assert body['data']['refresh_token']

        user = User.query.filter_by(email='new@example.com').one()
        assert user.role == 'customer'
        assert user.check_password('secret123')

    def test_register_ignores_requested_role(self, client):
        response = client.post('/api/v1/auth/register', json={
            'name': 'Sneaky',
            'email': 'sneaky@example.com',
            'phone': '555-0002',
            'password': 'secret123',
            'role': 'admin',
        })

        assert response.status_code == 201
        assert User.query.filter_by(email='sneaky@example.com').one().role == 'customer'

    def test_register_duplicate_email(self, client, customer):
        response = client.post('/api/v1/auth/register', json={
            'name': 'Copy',
            'email': customer.email,
            'phone': '555-0003',
            'password': 'secret123',
        })

        assert response.status_code == 409
        assert response.get_json()['message'] == 'User already exists'

    def test_register_reports_every_invalid_field(self, client):
        response = client.post('/api/v1/auth/register', json={
            'email': 'not-an-email',
            'password': '123',
        })

        assert response.status_code == 422
        body = response.get_json()
        assert body['success'] is False
        fields = {error['field'] for error in body['errors']}
        assert fields == {'name', 'email', 'phone', 'password'}


class TestLogin:

    def test_login_success(self, client, customer):
        response = client.post('/api/v1/auth/login', json={
            'email': customer.email,
            'password': 'Password123',
        })

        assert response.status_code == 200
        data = response.get_json()['data']
        assert set(data) == {'access_token', 'refresh_token', 'expires_in', 'refresh_expires_in'}
        assert data['refresh_expires_in'] > data['expires_in']

    def test_login_wrong_password(self, client, customer):
        response = client.post('/api/v1/auth/login', json={
            'email': customer.email,
            'password': 'wrong-password',
        })

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Invalid credentials'

    def test_login_unknown_email(self, client):
        response = client.post('/api/v1/auth/login', json={
            'email': 'nobody@example.com',
            'password': 'Password123',
        })

        assert response.status_code == 401


class TestTokenVerification:

    def test_me_returns_current_user(self, client, customer, customer_headers):
        response = client.get('/api/v1/auth/me', headers=customer_headers)

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['id'] == customer.id
        assert 'password' not in data
        assert 'passwordHash' not in data

    def test_missing_token(self, client):
        response = client.get('/api/v1/auth/me')

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Not authorized to access this route'

    def test_garbage_token(self, client):
        response = client.get('/api/v1/auth/me', headers={'Authorization': 'Bearer not.a.jwt'})

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Invalid token'

    def test_expired_token(self, app, client, customer):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {'id': customer.id, 'role': customer.role, 'type': 'access', 'iat': past, 'exp': past + timedelta(hours=1)},
            app.config['JWT_SECRET'],
            algorithm='HS256',
        )

        response = client.get('/api/v1/auth/me', headers={'Authorization': f'Bearer {token}'})

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Token has expired'

    def test_token_for_deleted_user(self, client, customer, customer_headers):
        db.session.delete(customer)
        db.session.commit()

        response = client.get('/api/v1/auth/me', headers=customer_headers)

        assert response.status_code == 401
        assert response.get_json()['message'] == 'User not found'

    def test_refresh_token_cannot_authenticate_requests(self, client, customer, auth_headers):
        response = client.get('/api/v1/auth/me', headers=auth_headers(customer, 'refresh'))

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Invalid token type'

    def test_logout(self, client, customer_headers):
        response = client.get('/api/v1/auth/logout', headers=customer_headers)

        assert response.status_code == 200


class TestRefresh:

    def test_refresh_issues_new_pair(self, client, customer):
        login = client.post('/api/v1/auth/login', json={'email': customer.email, 'password': 'Password123'})
        refresh_token = login.get_json()['data']['refresh_token']

        response = client.post('/api/v1/auth/refresh', json={'refresh_token': refresh_token})

        assert response.status_code == 200
        data = response.get_json()['data']
        me = client.get('/api/v1/auth/me', headers={'Authorization': f"Bearer {data['access_token']}"})
        assert me.status_code == 200

    def test_refresh_requires_token(self, client):
        response = client.post('/api/v1/auth/refresh', json={})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Refresh token is required'

    def test_refresh_rejects_access_token(self, client, customer):
        login = client.post('/api/v1/auth/login', json={'email': customer.email, 'password': 'Password123'})
        access_token = login.get_json()['data']['access_token']

        response = client.post('/api/v1/auth/refresh', json={'refresh_token': access_token})

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Invalid token type'
