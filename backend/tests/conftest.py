"""
Pytest fixtures for BusinessHub backend tests.

Provides test database setup, tenant fixtures (two organizations with their
own roles and users), and the test client.
"""

import pytest
from businesshub import create_app
from businesshub.extensions import db
from businesshub.models import Organization, User, Role, UserRole, Business, Contact, Product
from businesshub.services.auth_service import hash_password, create_default_roles
from businesshub.services import permission_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp("uploads")),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow; hash the shared test password once."""
    return hash_password(PASSWORD)


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
    org = Organization(name="Org A - Acme IT", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Systems", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def setup_roles(db_session, org_a, org_b):
    """Default roles for both organizations plus the permission catalog."""
    create_default_roles(org_a.id)
    create_default_roles(org_b.id)
    permission_service.initialize_permissions()
    permission_service.assign_default_role_permissions()
    db_session.commit()


def make_user(db_session, org, username: str, role_name: str, password_hash: str) -> User:
    """Create a user in `org` holding one of the organization's roles."""
    user = User(
        org_id=org.id,
        username=username,
        email=f"{username}@example.com",
        name=username.replace("_", " ").title(),
        password_hash=password_hash,
    )
    db_session.add(user)
    db_session.commit()

    role = db_session.query(Role).filter_by(org_id=org.id, name=role_name).first()
    db_session.add(UserRole(user_id=user.id, role_id=role.id))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_a(db_session, org_a, setup_roles, password_hash):
    """Admin in Organization A."""
    return make_user(db_session, org_a, "admin_a", "admin", password_hash)


@pytest.fixture(scope='function')
def manager_a(db_session, org_a, setup_roles, password_hash):
    """Manager in Organization A."""
    return make_user(db_session, org_a, "manager_a", "manager", password_hash)


@pytest.fixture(scope='function')
def user_a(db_session, org_a, setup_roles, password_hash):
    """Basic user in Organization A."""
    return make_user(db_session, org_a, "user_a", "user", password_hash)


@pytest.fixture(scope='function')
def admin_b(db_session, org_b, setup_roles, password_hash):
    """Admin in Organization B."""
    return make_user(db_session, org_b, "admin_b", "admin", password_hash)


@pytest.fixture(scope='function')
def admin_headers(client, admin_a):
    return auth_headers(get_auth_token(client, "admin_a", PASSWORD))


@pytest.fixture(scope='function')
def manager_headers(client, manager_a):
    return auth_headers(get_auth_token(client, "manager_a", PASSWORD))


@pytest.fixture(scope='function')
def user_headers(client, user_a):
    return auth_headers(get_auth_token(client, "user_a", PASSWORD))


@pytest.fixture(scope='function')
def admin_b_headers(client, admin_b):
    return auth_headers(get_auth_token(client, "admin_b", PASSWORD))


@pytest.fixture(scope='function')
def business_a(db_session, org_a):
    """Create a Business in Organization A."""
    business = Business(org_id=org_a.id, name="Harbour Dental", category="Healthcare", status="Active")
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def business_b(db_session, org_b):
    """Create a Business in Organization B."""
    business = Business(org_id=org_b.id, name="Beta Bakery", status="Active")
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def contact_a(db_session, business_a):
    contact = Contact(
        org_id=business_a.org_id,
        business_id=business_a.id,
        name="Dana Reed",
        email="dana@harbourdental.example",
    )
    db_session.add(contact)
    db_session.commit()
    return contact


@pytest.fixture(scope='function')
def serialized_product_a(db_session, org_a):
    """Serialized hardware product in Organization A (£450.00)."""
    product = Product(
        org_id=org_a.id,
        name="Firewall Appliance",
        category="Hardware",
        sku="FW-100",
        price_cents=45000,
        pricing_type="one-off",
        is_serialized=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def plain_product_a(db_session, org_a):
    """Non-serialized monthly product in Organization A (£50.00)."""
    product = Product(
        org_id=org_a.id,
        name="Managed Backup",
        category="Software",
        sku="MB-01",
        price_cents=5000,
        pricing_type="monthly",
        is_serialized=False,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, org_b):
    """Create Product in Organization B."""
    product = Product(org_id=org_b.id, name="Beta Router", sku="BR-1", price_cents=2000, is_serialized=True)
    db_session.add(product)
    db_session.commit()
    return product


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
