"""
Pytest fixtures for eventfin backend tests.

Provides test database setup, two tenants with one user per role, events,
vendors, principals for service-level tests and bearer headers for API tests.
"""

import pytest

from eventfin import create_app
from eventfin.extensions import db
from eventfin.models import Organization, Event, Vendor
from eventfin.permissions import Principal, UserRole
from eventfin.services.auth_service import create_user


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_LOG_ROUNDS': 4,
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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Events", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Summits", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


def _user(org, role: UserRole, prefix: str = ""):
    return create_user(
        email=f"{prefix}{role.value}@{org.code.lower()}.test",
        password=PASSWORD,
        org_id=org.id,
        role=role,
        full_name=f"{org.code} {role.value}",
    )


@pytest.fixture(scope='function')
def admin_a(db_session, org_a):
    return _user(org_a, UserRole.ADMIN)


@pytest.fixture(scope='function')
def manager_a(db_session, org_a):
    return _user(org_a, UserRole.MANAGER)


@pytest.fixture(scope='function')
def finance_a(db_session, org_a):
    return _user(org_a, UserRole.FINANCE)


@pytest.fixture(scope='function')
def viewer_a(db_session, org_a):
    return _user(org_a, UserRole.VIEWER)


@pytest.fixture(scope='function')
def users_a(admin_a, manager_a, finance_a, viewer_a):
    """One user per role in Organization A."""
    return {
        UserRole.ADMIN: admin_a,
        UserRole.MANAGER: manager_a,
        UserRole.FINANCE: finance_a,
        UserRole.VIEWER: viewer_a,
    }


@pytest.fixture(scope='function')
def admin_b(db_session, org_b):
    return _user(org_b, UserRole.ADMIN)


@pytest.fixture(scope='function')
def finance_b(db_session, org_b):
    return _user(org_b, UserRole.FINANCE)


@pytest.fixture(scope='function')
def event_a(db_session, org_a):
    event = Event(org_id=org_a.id, name="Spring Summit")
    db_session.add(event)
    db_session.commit()
    return event


@pytest.fixture(scope='function')
def event_b(db_session, org_b):
    event = Event(org_id=org_b.id, name="Beta Launch Party")
    db_session.add(event)
    db_session.commit()
    return event


@pytest.fixture(scope='function')
def vendor_a(db_session, org_a):
    vendor = Vendor(org_id=org_a.id, name="Blue Catering", service_type="catering")
    db_session.add(vendor)
    db_session.commit()
    return vendor


@pytest.fixture(scope='function')
def vendor_b(db_session, org_b):
    vendor = Vendor(org_id=org_b.id, name="Beta AV", service_type="av")
    db_session.add(vendor)
    db_session.commit()
    return vendor


def principal_for(user) -> Principal:
    """Principal as require_auth would build it for this user."""
    return Principal(user_id=user.id, org_id=user.org_id, role=user.user_role)


@pytest.fixture(scope='function')
def finance_principal(finance_a):
    return principal_for(finance_a)


@pytest.fixture(scope='function')
def manager_principal(manager_a):
    return principal_for(manager_a)


@pytest.fixture(scope='function')
def admin_principal(admin_a):
    return principal_for(admin_a)


@pytest.fixture(scope='function')
def principal_b(finance_b):
    return principal_for(finance_b)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/v1/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_a):
    return auth_headers(get_auth_token(client, admin_a.email))


@pytest.fixture(scope='function')
def manager_headers(client, manager_a):
    return auth_headers(get_auth_token(client, manager_a.email))


@pytest.fixture(scope='function')
def finance_headers(client, finance_a):
    return auth_headers(get_auth_token(client, finance_a.email))


@pytest.fixture(scope='function')
def viewer_headers(client, viewer_a):
    return auth_headers(get_auth_token(client, viewer_a.email))


@pytest.fixture(scope='function')
def finance_b_headers(client, finance_b):
    return auth_headers(get_auth_token(client, finance_b.email))
