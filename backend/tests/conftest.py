"""
Pytest fixtures for motopos backend tests.

Provides the in-memory application, a clean database per test, two
tenants (each with an ADMIN user and a small catalog) and helpers to act
as a user either through HTTP (bearer token) or directly in services.
"""

from decimal import Decimal

import pytest
from flask import g

from motopos import create_app
from motopos.config import TestingConfig
from motopos.extensions import db
from motopos.models import Tenant, User, Product, Category
from motopos.services.auth_service import hash_password
from motopos.services import session_service


PASSWORD = "Clave1234"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

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
    """Fresh data (same schema) for each test, inside its own app context."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


def _make_tenant(db_session, name, slug, email):
    tenant = Tenant(name=name, slug=slug, email=email, is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


def _make_user(db_session, tenant, name, email, role="ADMIN"):
    user = User(
        tenant_id=tenant.id,
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Tenant A: Motos El Llano."""
    return _make_tenant(db_session, "Motos El Llano", "motos-el-llano", "llano@example.com")


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Tenant B: Repuestos La Sabana."""
    return _make_tenant(db_session, "Repuestos La Sabana", "repuestos-la-sabana", "sabana@example.com")


@pytest.fixture(scope='function')
def user_a(db_session, tenant_a):
    return _make_user(db_session, tenant_a, "Ana Admin", "ana@llano.com")


@pytest.fixture(scope='function')
def user_b(db_session, tenant_b):
    return _make_user(db_session, tenant_b, "Beto Admin", "beto@sabana.com")


@pytest.fixture(scope='function')
def cashier_a(db_session, tenant_a):
    """Non-admin user in tenant A."""
    return _make_user(db_session, tenant_a, "Carla Caja", "carla@llano.com", role="USER")


def _make_product(db_session, tenant, sku, name, stock, min_stock=5, sale_price="25000.00", cost_price="15000.00"):
    product = Product(
        tenant_id=tenant.id,
        sku=sku,
        name=name,
        stock=stock,
        min_stock=min_stock,
        sale_price=Decimal(sale_price),
        cost_price=Decimal(cost_price),
        is_active=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session, tenant_a):
    """Brake pads in tenant A, comfortably stocked."""
    return _make_product(db_session, tenant_a, "PF-001", "Pastillas de freno", stock=20)


@pytest.fixture(scope='function')
def scarce_product_a(db_session, tenant_a):
    """Spark plug in tenant A with only 2 units."""
    return _make_product(
        db_session, tenant_a, "BU-002", "Bujía NGK", stock=2, min_stock=5,
        sale_price="12000.00", cost_price="7000.00",
    )


@pytest.fixture(scope='function')
def product_b(db_session, tenant_b):
    return _make_product(db_session, tenant_b, "CA-100", "Cadena 428", stock=10)


@pytest.fixture(scope='function')
def category_a(db_session, tenant_a):
    category = Category(tenant_id=tenant_a.id, name="Frenos")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def act_as(db_session):
    """
    Establish tenant context for direct service calls, the same way
    require_auth does for requests.
    """
    def _act_as(user):
        g.current_user = user
        g.tenant_id = user.tenant_id
        return user

    yield _act_as

    g.pop("current_user", None)
    g.pop("tenant_id", None)
    g.pop("session_context", None)


@pytest.fixture(scope='function')
def headers_for(db_session):
    """Bearer headers for a fresh session of the given user."""
    def _headers_for(user):
        _, token = session_service.create_session(user.id)
        return auth_headers(token)
    return _headers_for


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
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
