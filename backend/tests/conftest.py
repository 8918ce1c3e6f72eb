"""
Pytest fixtures for bike shop backend tests.

Provides test database setup, users for each role, and the test client.
"""

import pytest
from bikeshop import create_app
from bikeshop.extensions import db
from bikeshop.models import Bike, Client
from bikeshop.services import auth_service
from bikeshop.services.access_policy import requester_for


TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'GEMINI_API_KEY': 'test-key',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_user(email: str, name: str, role: str = "user"):
    user = auth_service.sign_up(email, TEST_PASSWORD, name)
    if role != "user":
        auth_service.set_role(user.id, role)
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    """Shop owner with the admin role."""
    return make_user("owner@bikeshop.test", "Olive Owner", role="admin")


@pytest.fixture(scope='function')
def staff_user(db_session):
    """Regular signed-up user (role "user")."""
    return make_user("sam@bikeshop.test", "Sam Staff")


@pytest.fixture(scope='function')
def other_user(db_session):
    """A second regular user."""
    return make_user("rita@bikeshop.test", "Rita Rider")


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email, TEST_PASSWORD))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.email, TEST_PASSWORD))


@pytest.fixture(scope='function')
def other_headers(client, other_user):
    return auth_headers(get_auth_token(client, other_user.email, TEST_PASSWORD))


@pytest.fixture(scope='function')
def make_bike(db_session):
    """Factory: create a bike directly in the database."""
    counter = {"n": 0}

    def _make(owner, status="available", **fields):
        counter["n"] += 1
        bike = Bike(
            brand=fields.pop("brand", "Trek"),
            model=fields.pop("model", "Domane AL 2"),
            serial_number=fields.pop("serial_number", f"SN-{counter['n']:04d}"),
            status=status,
            user_id=owner.id if owner is not None else None,
            photos=[],
            **fields,
        )
        db_session.add(bike)
        db_session.commit()
        return bike

    return _make


@pytest.fixture(scope='function')
def shop_client(db_session):
    """A client record (shop customer)."""
    record = Client(name="Casey Customer", phone="0412345678", email="casey@example.com", bike_serial_numbers=[])
    db_session.add(record)
    db_session.commit()
    return record


def requester(user):
    return requester_for(user.id if user is not None else None)


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
