"""
Pytest configuration for the Maison Darin API tests.

MongoDB is replaced by a fresh mongomock database per test, installed
through database.use_database() before the app starts.
"""
import sys
from pathlib import Path

import mongomock
import pytest
from fastapi.testclient import TestClient

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import database  # noqa: E402
import ratelimit  # noqa: E402
import security  # noqa: E402
from main import app  # noqa: E402
from schemas import Product  # noqa: E402
from services import catalog  # noqa: E402

ADMIN_EMAIL = "admin@maisondarin.com"
ADMIN_PASSWORD = "Admin123!"
CUSTOMER_EMAIL = "layla@example.com"
CUSTOMER_PASSWORD = "secret1"


@pytest.fixture
def db():
    mock_db = mongomock.MongoClient().maison_darin_test
    database.use_database(mock_db)
    ratelimit.reset_all()
    security._token_blacklist.clear()
    yield mock_db
    database.connection.disconnect()
    database.db = None


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_user(db):
    return security.register_user(ADMIN_EMAIL, ADMIN_PASSWORD, "Darin", "Admin", role="admin")


@pytest.fixture
def customer_user(db):
    return security.register_user(CUSTOMER_EMAIL, CUSTOMER_PASSWORD, "Layla", "Haddad")


def bearer(user: dict) -> dict:
    return {"Authorization": f"Bearer {security.create_tokens(user)['access_token']}"}


@pytest.fixture
def admin_headers(admin_user):
    return bearer(admin_user)


@pytest.fixture
def customer_headers(customer_user):
    return bearer(customer_user)


def product_payload(**overrides) -> dict:
    payload = {
        "name": {"en": "Rose Oud", "ar": "ورد عود"},
        "description": {"en": "Damask rose over smoked oud", "ar": "ورد دمشقي فوق عود مدخن"},
        "price": 120.0,
        "size": "50ml",
        "category": "oriental",
        "stock": 10,
        "featured": True,
        "notes": {
            "top": {"en": ["Saffron"], "ar": ["زعفران"]},
            "middle": {"en": ["Rose"], "ar": ["ورد"]},
            "base": {"en": ["Oud"], "ar": ["عود"]},
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_product(db):
    def factory(**overrides) -> dict:
        return catalog.create_product(Product(**product_payload(**overrides)))
    return factory


@pytest.fixture
def product(make_product):
    return make_product()
