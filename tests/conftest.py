"""Shared test fixtures for the coursepay test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: admin, buyer, courses and an active Paystack settings row
- login: helper to log a user in through /auth/login
- paystack_response: builds mock `requests` responses
"""

import json
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from werkzeug.security import generate_password_hash

from coursepay import create_app
from coursepay.extensions import db as _db
from coursepay.models.course import Course
from coursepay.models.payment_settings import PaymentGatewaySettings
from coursepay.models.user import User
from coursepay.services.crypto_service import SecretCipher

SECRET_KEY = "sk_test_4f9c2b7e1d3a5c8e0b6d9f2a1c4e7b3d5a8c1234"
PUBLIC_KEY = "pk_test_a88eed026b20662ed411de5ab2351008f35417d9"


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def cipher(app):
    return SecretCipher(app.config["PAYMENT_ENCRYPTION_KEY"])


@pytest.fixture
def seed_data(db_session, cipher):
    """Seed an admin, a buyer, a published + a draft course, and active
    Paystack settings.

    Returns a dict with the created objects and their ids.
    """
    # --- Users ---
    admin = User(
        email="admin@coursepay.local",
        password_hash=generate_password_hash("admin123"),
        full_name="Admin User",
        is_admin=True,
    )
    buyer = User(
        email="ada@learners.ng",
        password_hash=generate_password_hash("buyerpass123"),
        full_name="Ada Learner",
    )
    db_session.add_all([admin, buyer])

    # --- Courses ---
    course = Course(
        title="Data Analysis with Python",
        slug="data-analysis-python",
        price=Decimal("15000"),
        currency="NGN",
        status="published",
    )
    draft = Course(
        title="Unreleased Course",
        slug="unreleased",
        price=Decimal("5000"),
        currency="NGN",
        status="draft",
    )
    db_session.add_all([course, draft])

    # --- Gateway settings (secret encrypted at rest) ---
    db_session.add(PaymentGatewaySettings(
        name="paystack",
        public_key=PUBLIC_KEY,
        secret_key=cipher.encrypt(SECRET_KEY),
        is_active=True,
    ))
    db_session.commit()

    return {
        "admin": admin,
        "admin_id": admin.id,
        "buyer": buyer,
        "buyer_id": buyer.id,
        "course": course,
        "course_id": course.id,
        "draft_course_id": draft.id,
    }


@pytest.fixture
def login(client):
    """Log a user in: login("ada@learners.ng", "buyerpass123")."""

    def _login(email, password):
        resp = client.post(
            "/auth/login",
            json={"email": email, "password": password},
        )
        assert resp.status_code == 200, resp.data
        return resp

    return _login


@pytest.fixture
def login_buyer(login, seed_data):
    return login("ada@learners.ng", "buyerpass123")


@pytest.fixture
def login_admin(login, seed_data):
    return login("admin@coursepay.local", "admin123")


def make_response(status_code=200, body=None):
    """A stand-in for requests.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    if body is None:
        resp.json.side_effect = ValueError("No JSON")
        resp.text = ""
    else:
        resp.json.return_value = body
        resp.text = json.dumps(body)
    return resp


@pytest.fixture
def paystack_response():
    return make_response


@pytest.fixture
def gateway_secret():
    """Cleartext Paystack secret stored by seed_data."""
    return SECRET_KEY
