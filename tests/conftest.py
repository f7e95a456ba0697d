import asyncio
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["MPESA_CALLBACK_TOKEN"] = ""
os.environ["RESEND_API_KEY"] = ""

from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from backend import auth, models
from backend.database import Base, SessionLocal, engine
from backend.server import app


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


def headers_for(user):
    return {"Authorization": f"Bearer {auth.create_jwt_token(user.id)}"}


@pytest.fixture
def make_user(db):
    def _make(role="customer", email=None, password="secret123", name="Test User", is_blocked=False):
        user = models.User(
            email=email or f"{role}-{uuid4().hex[:8]}@mail.com",
            name=name,
            password=auth.hash_password(password),
            role=role,
            is_blocked=is_blocked,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def customer(make_user):
    return make_user("customer", name="Jane Customer")


@pytest.fixture
def admin(make_user):
    return make_user("admin", name="Ada Admin")


@pytest.fixture
def pharmacist(make_user):
    return make_user("pharmacist", name="Phil Pharmacist")


@pytest.fixture
def make_product(db):
    def _make(**overrides):
        values = {
            "name": "Paracetamol 500mg",
            "description": "Pain and fever relief",
            "category": "painkillers",
            "price": 100.0,
            "count_in_stock": 5,
            "prescription_required": False,
            "expiry_date": models.utcnow() + timedelta(days=365),
            "status": "active",
        }
        values.update(overrides)
        product = models.Product(**values)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def place_order(client):
    def _place(user, items, **extra):
        body = {
            "orderItems": [{"product": p.id, "qty": qty} for p, qty in items],
            "shippingAddress": {
                "phone": "0712345678",
                "city": "Nairobi",
                "street": "Moi Avenue 12",
            },
        }
        body.update(extra)
        return client.post("/api/orders", json=body, headers=headers_for(user))
    return _place


@pytest.fixture
def auth_headers():
    return headers_for


def running_on_event_loop():
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


@pytest.fixture
def on_event_loop():
    return running_on_event_loop
