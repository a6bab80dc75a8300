import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="pcshop-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'pcshop.db')}"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["PAYMENT_WEBHOOK_SECRET"] = "whsec-test"
os.environ.pop("REDIS_URL", None)
os.environ.pop("MAIL_SERVICE_URL", None)

import json
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from pcshop.core_settings import get_settings
from pcshop.domain.models import (
    Base, StockItem, Configuration, ConfigItem, ConfigurationStatus, Order, AuditLog,
)
from pcshop.infrastructure.db import engine, SessionLocal
from pcshop.infrastructure.auth_local import create_access_token
from pcshop.infrastructure.cache import get_cache
from pcshop.infrastructure.payment_gateway import SIGNATURE_HEADER, sign_payload
from pcshop.api.deps import get_receipt_sender
from pcshop.main import app

class FakeReceiptSender:
    def __init__(self):
        self.sent = []

    def send_receipt(self, order_id, locale="en"):
        self.sent.append((order_id, locale))
        return True

@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    get_cache().clear()
    yield

@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def receipts():
    return FakeReceiptSender()

@pytest.fixture
def client(receipts):
    app.dependency_overrides[get_receipt_sender] = lambda: receipts
    yield TestClient(app)
    app.dependency_overrides.clear()

def auth(user_id, role="USER"):
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}

def signed_webhook(payload, secret=None, timestamp=None):
    """Body and headers for a webhook delivery signed like the gateway does."""
    body = json.dumps(payload).encode()
    secret = secret or get_settings().PAYMENT_WEBHOOK_SECRET
    return body, {SIGNATURE_HEADER: sign_payload(body, secret, timestamp), "Content-Type": "application/json"}

# Helpers open their own short sessions. On SQLite every transaction holds
# the write lock, so an idle open session would block the app's requests.

def add_stock(item_id, quantity, price="100.00", kind="COMPONENT", name=None):
    with SessionLocal() as session:
        item = StockItem(id=item_id, kind=kind, name=name or item_id.upper(), price=Decimal(price),
                         quantity=quantity)
        session.add(item)
        session.commit()
        return item

def add_configuration(user_id, components, status=ConfigurationStatus.DRAFT, is_public=False,
                      total_price="0.00", name="Gaming build"):
    with SessionLocal() as session:
        config = Configuration(
            user_id=user_id,
            name=name,
            status=status.value,
            is_public=is_public,
            is_template=is_public,
            total_price=Decimal(total_price),
            components=[ConfigItem(component_id=cid, quantity=qty) for cid, qty in components.items()],
        )
        session.add(config)
        session.commit()
        return config.id

def stock_of(item_id):
    with SessionLocal() as session:
        return session.get(StockItem, item_id).quantity

def audit_entries(entity_id, action=None):
    with SessionLocal() as session:
        query = select(AuditLog).where(AuditLog.entity_id == entity_id).order_by(AuditLog.id)
        if action:
            query = query.where(AuditLog.action == action)
        return [(row.action, row.user_id, row.details) for row in session.scalars(query)]

def order_status(order_id):
    with SessionLocal() as session:
        return session.get(Order, order_id).status

def order_payload(items, payment_method="card", **overrides):
    payload = {
        "items": [{"id": item_id, "type": kind, "quantity": qty} for item_id, kind, qty in items],
        "shippingAddress": {
            "fullName": "Ada Lovelace",
            "email": "ada@example.com",
            "phone": "+44 20 7946 0000",
            "address": "12 Analytical St",
            "city": "London",
            "postalCode": "N1 9GU",
            "country": "UK",
        },
        "paymentMethod": payment_method,
    }
    payload.update(overrides)
    return payload
