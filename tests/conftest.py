"""
Pytest configuration and fixtures for Baggs backend tests
"""
import itertools

import pytest

from baggs import create_app, db
from baggs.models import Transfer, User, Worker
from baggs.utils import generate_token

_sequence = itertools.count(1)

ITEMS = [{'name': 'Suitcase', 'weight': 20, 'images': ['a.jpg', 'b.jpg', 'c.jpg'], 'isBreakable': False}]


@pytest.fixture(scope='function')
def app():
    """Create application instance with a fresh in-memory database"""
    app = create_app('testing')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Factory for stored users"""
    def _make_user(role='customer', password='Password123', **fields):
        n = next(_sequence)
        user = User(
            name=fields.pop('name', f'User {n}'),
            email=fields.pop('email', f'user{n}@example.com'),
            phone=fields.pop('phone', f'555-{n:04d}'),
            role=role,
            **fields
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user(role='admin', name='Admin User', email='admin@example.com')


@pytest.fixture
def customer(make_user):
    return make_user(role='customer', name='Jane Customer', email='jane@example.com')


@pytest.fixture
def other_customer(make_user):
    return make_user(role='customer', name='Other Customer', email='other@example.com')


@pytest.fixture
def make_worker(app):
    """Factory for stored workers"""
    def _make_worker(**fields):
        n = next(_sequence)
        worker = Worker(
            name=fields.pop('name', f'Worker {n}'),
            email=fields.pop('email', f'worker{n}@example.com'),
            phone=fields.pop('phone', f'555-9{n:03d}'),
            identity_number=fields.pop('identity_number', f'ID-{n:05d}'),
            **fields
        )
        worker.set_password('Password123')
        db.session.add(worker)
        db.session.commit()
        return worker
    return _make_worker


@pytest.fixture
def make_transfer(app):
    """Factory for stored transfers"""
    def _make_transfer(user, **fields):
        transfer = Transfer(
            user_id=user.id,
            items=fields.pop('items', ITEMS),
            total_amount=fields.pop('total_amount', 50),
            from_location=fields.pop('from_location', 'Terminal 1'),
            to_location=fields.pop('to_location', 'Hotel Central'),
            delivery_time='09:00',
            pick_up_time='07:00',
            **fields
        )
        db.session.add(transfer)
        db.session.commit()
        return transfer
    return _make_transfer


def bearer(user, token_type='access'):
    return {'Authorization': f'Bearer {generate_token(user, token_type)}'}


@pytest.fixture
def auth_headers():
    """Build Authorization headers for any user"""
    return bearer


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def customer_headers(customer):
    return bearer(customer)


@pytest.fixture
def other_headers(other_customer):
    return bearer(other_customer)
