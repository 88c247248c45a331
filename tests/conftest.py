import os
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

# Test configuration must be in place before any cartflow module reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["PRICE_VISIBILITY"] = "all"

from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from cartflow.core.auth import create_access_token
from cartflow.core.clock import utcnow
from cartflow.database import engine, get_session
from cartflow.main import app
from cartflow.models.product import Category, Product
from cartflow.models.promotion import Promotion
from cartflow.models.user import Company, User


@pytest.fixture(scope='function')
def session():
    """Fresh in-memory schema per test."""
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(scope='function')
def client(session):
    """Test client sharing the test session with the app."""

    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(scope='function')
def company(session):
    company = Company(name='Boulangerie Martin', code='BMA')
    session.add(company)
    session.commit()
    return company


@pytest.fixture(scope='function')
def other_company(session):
    company = Company(name='Hotel du Parc', code='HDP')
    session.add(company)
    session.commit()
    return company


@pytest.fixture(scope='function')
def user(session, company):
    """Customer belonging to `company`."""
    suffix = str(uuid.uuid4())[:8]
    user = User(
        email=f'claire-{suffix}@example.com',
        first_name='Claire',
        last_name='Martin',
        company_id=company.id,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def other_user(session, other_company):
    suffix = str(uuid.uuid4())[:8]
    user = User(
        email=f'paul-{suffix}@example.com',
        first_name='Paul',
        last_name='Durand',
        company_id=other_company.id,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin(session):
    suffix = str(uuid.uuid4())[:8]
    admin = User(
        email=f'admin-{suffix}@example.com',
        first_name='Ada',
        last_name='Admin',
        role='admin',
    )
    session.add(admin)
    session.commit()
    return admin


@pytest.fixture(scope='function')
def bread(session):
    category = Category(name='Bread', slug='bread')
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def pastry(session):
    category = Category(name='Pastry', slug='pastry')
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def product_a(session, bread):
    """10.00 per unit, category Bread."""
    product = Product(
        name='Baguette tradition',
        slug='baguette-tradition',
        price=Decimal('10.00'),
        category_id=bread.id,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(session, pastry):
    """25.00 per unit, category Pastry."""
    product = Product(
        name='Tarte aux pommes',
        slug='tarte-aux-pommes',
        price=Decimal('25.00'),
        category_id=pastry.id,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def inactive_product(session, bread):
    product = Product(
        name='Pain de saison',
        slug='pain-de-saison',
        price=Decimal('4.50'),
        category_id=bread.id,
        is_active=False,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def make_promotion(session):
    """Factory persisting a promotion that started yesterday."""

    def _make(**fields):
        now = utcnow()
        values = {
            'name': 'Promotion',
            'discount_percentage': Decimal('10'),
            'start_date': now - timedelta(days=1),
            'created_at': now - timedelta(days=1),
            'updated_at': now - timedelta(days=1),
        }
        values.update(fields)
        for key in ('product_ids', 'category_ids'):
            values[key] = [str(v) for v in values.get(key, [])]
        promotion = Promotion(**values)
        session.add(promotion)
        session.commit()
        return promotion

    return _make


@pytest.fixture(scope='function')
def pastry_promotion(make_promotion, pastry):
    """20% off every Pastry product, all companies."""
    return make_promotion(
        name='Pastry week',
        discount_percentage=Decimal('20'),
        applies_to_all_products=False,
        category_ids=[pastry.id],
    )


def auth_headers(user: User) -> dict:
    return {'Authorization': f'Bearer {create_access_token(user.id)}'}


@pytest.fixture(scope='function')
def headers_for():
    return auth_headers


@pytest.fixture(scope='function')
def user_headers(user):
    return auth_headers(user)


@pytest.fixture(scope='function')
def other_user_headers(other_user):
    return auth_headers(other_user)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return auth_headers(admin)
