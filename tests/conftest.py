import os

# Must be set before order_tracker is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient

from order_tracker import storage
from order_tracker.database import SessionLocal, engine
from order_tracker.main import app
from order_tracker.models import Base
from order_tracker.security import hash_password

ADMIN_PASSWORD = "admin123"
CUSTOMER_PASSWORD = "secret1"


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin(db):
    return storage.create_user(db, "admin", hash_password(ADMIN_PASSWORD))


@pytest.fixture
def admin_headers(client, admin):
    r = client.post("/api/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['token']}"}


@pytest.fixture
def customer(db):
    return storage.create_customer(db, {
        "name": "سالم علي",
        "phone_number": "0912345678",
        "password": hash_password(CUSTOMER_PASSWORD),
    })


@pytest.fixture
def customer_headers(client, customer):
    r = client.post("/api/customer/login", json={"identifier": customer.account_number, "password": CUSTOMER_PASSWORD})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['token']}"}


def make_order(db, **overrides):
    data = {"customer_name": "Test", "phone_number": "0910000000"}
    data.update(overrides)
    return storage.create_order(db, data)
