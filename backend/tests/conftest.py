"""
Pytest fixtures for CutQuote backend tests.

Provides an in-memory application, per-test table wipe, user / material /
quote factories and bearer-token headers.
"""

import itertools
from decimal import Decimal

import pytest

from cutquote import create_app
from cutquote.extensions import db
from cutquote.models import LineItem, Material, Quote, User
from cutquote.permissions import Actor, Role
from cutquote.services import session_service
from cutquote.services.rate_limit_service import RateLimiter


WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_EMAIL = "admin@cutquote.test"

ADDRESS = {
    "street": "Industrieweg 12",
    "city": "Eindhoven",
    "postal_code": "5600 AA",
    "country": "NL",
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_ENGINE_OPTIONS': {},
        'PAYMENT_WEBHOOK_SECRET': WEBHOOK_SECRET,
        'ADMIN_EMAIL': ADMIN_EMAIL,
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
    """Fresh data (and fresh rate-limit buckets) for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions["rate_limiter"] = RateLimiter()

        yield db.session

        db.session.rollback()


# =============================================================================
# USERS
# =============================================================================


_emails = itertools.count(1)


@pytest.fixture
def make_user(db_session):
    def _make(role="customer", name=None, email=None, is_active=True):
        n = next(_emails)
        user = User(
            email=email or f"{role}{n}@example.com",
            name=name or f"{role.title()} {n}",
            role=role,
            company_name="Acme Metal" if role == "customer" else None,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def customer(make_user):
    return make_user("customer", name="Carla Customer")


@pytest.fixture
def other_customer(make_user):
    return make_user("customer", name="Otto Other")


@pytest.fixture
def operator(make_user):
    return make_user("operator", name="Olga Operator")


@pytest.fixture
def other_operator(make_user):
    return make_user("operator", name="Bram Operator")


@pytest.fixture
def admin(make_user):
    return make_user("admin", name="Ada Admin", email="ada@cutquote.test")


@pytest.fixture
def actor_of():
    """User row -> Actor, as require_auth would build it."""
    def _actor(user) -> Actor:
        return Actor(user_id=user.id, role=Role(user.role))
    return _actor


@pytest.fixture
def headers_for(db_session):
    """Issue a bearer token for a user and return request headers."""
    def _headers(user):
        _, token = session_service.create_session(user.id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# =============================================================================
# CATALOG / QUOTES
# =============================================================================


@pytest.fixture
def make_material(db_session):
    def _make(name="Steel S235 3mm", is_active=True):
        material = Material(
            name=name,
            thickness_mm=Decimal("3.00"),
            price_per_sqm=Decimal("42.50"),
            cutting_speed_factor=Decimal("1.00"),
            is_active=is_active,
        )
        db_session.add(material)
        db_session.commit()
        return material
    return _make


_quote_numbers = itertools.count(1)


@pytest.fixture
def make_quote(db_session):
    """
    Insert a quote directly in any status.

    items: list of LineItem kwargs, e.g. [{"cutting_price": "10", "quantity": 2}]
    """
    def _make(customer, status="pending", operator=None, quote_number=None, items=(), **fields):
        quote = Quote(
            quote_number=quote_number or f"Q{900000 + next(_quote_numbers):06d}",
            revision_number=fields.pop("revision_number", 0),
            status=status,
            customer_id=customer.id,
            operator_id=operator.id if operator else None,
            shipping_address=dict(ADDRESS),
            **fields,
        )
        db_session.add(quote)
        db_session.flush()

        for item in items:
            item = dict(item)
            for key in ("cutting_price", "customer_price", "production_time_hours"):
                if item.get(key) is not None:
                    item[key] = Decimal(str(item[key]))
            item.setdefault("dxf_file_url", f"https://files.example.com/{quote.quote_number}.dxf")
            item.setdefault("dxf_file_name", "part.dxf")
            db_session.add(LineItem(quote_id=quote.id, **item))

        db_session.commit()
        return quote
    return _make
