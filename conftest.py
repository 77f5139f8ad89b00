"""
Fixtures compartidos por los tests de todos los módulos.

La base de datos es SQLite en memoria; el esquema se crea y destruye en cada
test para que ningún contador ni documento se filtre entre tests.
"""
import os

# Must be set before billdesk is imported: the engine is built at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"
os.environ["APP_SECRET_STRING"] = "test-secret-key-used-only-by-the-test-suite"

from decimal import Decimal

import jwt
import pytest
from fastapi.testclient import TestClient

from billdesk.core.config import settings
from billdesk.database.database import Base, SessionLocal, engine, get_db
from billdesk.main import app
from billdesk.modules.clients.schemas import ClientCreate
from billdesk.modules.clients.service import ClientService
from billdesk.modules.products.models import Product, ProductCategory
from billdesk.modules.staff.models import Staff

TEST_USER_ID = 1


# ===== FIXTURES =====

@pytest.fixture
def db_session():
    """Sesión sobre un esquema recién creado"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user_id():
    return TEST_USER_ID


@pytest.fixture
def sample_client(db_session):
    """Cliente activo creado por el servicio (consume CLT0001)"""
    return ClientService(db_session).create_client(
        ClientCreate(
            business_name="Acme Logistics",
            contact_person="Dana Reyes",
            email="billing@acme-logistics.com",
            phone="555-0100",
            city="Springfield"
        ),
        TEST_USER_ID
    )


@pytest.fixture
def sample_product(db_session):
    product = Product(
        name="Website Maintenance",
        description="Monthly maintenance of the corporate website",
        category=ProductCategory.SUPPORT_PACKAGE,
        sku="SUP-WEB-01",
        price=Decimal("60.00"),
        tax_rate=Decimal("10.00"),
        created_by=TEST_USER_ID
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def sample_staff(db_session):
    member = Staff(
        name="Jordan Lee",
        email="jordan.lee@billdesk.com",
        position="Developer",
        payment_rate=Decimal("45.00"),
        created_by=TEST_USER_ID
    )
    db_session.add(member)
    db_session.commit()
    db_session.refresh(member)
    return member


@pytest.fixture
def auth_token():
    return jwt.encode({"sub": str(TEST_USER_ID)}, settings.APP_SECRET_STRING, algorithm=settings.ALGORITHM)


@pytest.fixture
def api_client(db_session, auth_token):
    """TestClient autenticado que comparte la sesión del test"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        client.headers.update({"Authorization": f"Bearer {auth_token}"})
        yield client
    app.dependency_overrides.clear()
