"""
Pytest fixtures for InvoiceDesk backend tests.

Provides an in-memory database, seeded permissions/roles, admin and
distributor actors, directory rows, an invoice factory and auth headers.
"""

from datetime import date

import pytest

from invoicedesk import create_app
from invoicedesk.extensions import db
from invoicedesk.models import Client, Company, File
from invoicedesk.permissions import ROLE_BASIC_DISTRIBUTOR
from invoicedesk.services import auth_service, invoice_service, permission_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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
    """Fresh data for each test."""
    with app.app_context():
        # Clear all data but keep schema
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def seed(db_session):
    """Permissions, system roles and their default grants."""
    permission_service.initialize_permissions()
    permission_service.create_system_roles()
    permission_service.assign_default_role_permissions()
    db_session.commit()


@pytest.fixture(scope='function')
def admin(seed):
    return auth_service.create_admin("admin", PASSWORD)


def make_distributor(username: str, commission_rate=0, role_name: str = ROLE_BASIC_DISTRIBUTOR):
    user = auth_service.create_user(username, PASSWORD, commission_rate=commission_rate)
    if role_name:
        auth_service.assign_role(user.id, role_name)
    return user


@pytest.fixture(scope='function')
def make_user(seed):
    """Factory: make_user(username, commission_rate=0, role_name="basic_distributor"); role_name=None skips the role."""
    return make_distributor


@pytest.fixture(scope='function')
def distributor(seed):
    """Distributor holding the basic_distributor role, default rate 3%."""
    return make_distributor("dist1", commission_rate=3)


@pytest.fixture(scope='function')
def other_distributor(seed):
    return make_distributor("dist2", commission_rate=4)


@pytest.fixture(scope='function')
def company(admin, db_session):
    company = Company(name="Acme Shipping", commission_rate=5, created_by_user_id=admin.id)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def work_file(company, admin, db_session):
    file = File(file_name="acme-2024.pdf", company_id=company.id, created_by_user_id=admin.id)
    db_session.add(file)
    db_session.commit()
    return file


@pytest.fixture(scope='function')
def customer(admin, db_session):
    customer = Client(full_name="Jane Roe", phone="555-0101", commission_rate=2, created_by_user_id=admin.id)
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def make_invoice(admin, customer, work_file, distributor):
    """Factory: make_invoice(amount_cents=..., distributor=..., client=..., code=...)."""
    counter = {"n": 0}

    def _make(amount_cents=100000, distributor=distributor, client=customer, file=work_file,
              code=None, invoice_date=None):
        counter["n"] += 1
        return invoice_service.create_invoice(
            invoice_code=code or f"INV-{counter['n']:04d}",
            client_id=client.id,
            file_id=file.id,
            assigned_distributor_id=distributor.id,
            invoice_date=invoice_date or date.today().isoformat(),
            amount_cents=amount_cents,
            created_by_user_id=admin.id,
        )

    return _make


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.username))


@pytest.fixture(scope='function')
def distributor_headers(client, distributor):
    return auth_headers(get_auth_token(client, distributor.username))


@pytest.fixture(scope='function')
def login(client):
    """Factory: login(username) -> Authorization headers for a fresh session."""
    def _login(username: str, password: str = PASSWORD) -> dict:
        return auth_headers(get_auth_token(client, username, password))
    return _login
