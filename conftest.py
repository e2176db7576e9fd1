# conftest.py
import os

# settings are read at import time, so point them at a throwaway database first
os.environ.setdefault("APP_SECRET", "test-secret")
os.environ["DB_URL"] = "sqlite://"
os.environ["BUSINESS_TZ"] = "Asia/Kolkata"

import pytest
from fastapi.testclient import TestClient

from orderdesk.db import Base, SessionLocal, engine
from orderdesk.deps import get_notifier
from orderdesk.main import app


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def emit(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [e for e, _ in self.events]

    def payloads(self, event):
        return [p for e, p in self.events if e == event]


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    rec = RecordingNotifier()
    app.dependency_overrides[get_notifier] = lambda: rec
    yield rec
    app.dependency_overrides.pop(get_notifier, None)


@pytest.fixture
def client(notifier):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    s = SessionLocal()
    yield s
    s.close()


@pytest.fixture
def order_body():
    """Factory for a valid POST /orders body."""
    def make(session_id="S1", order_number="O1", **over):
        body = {
            "sessionId": session_id,
            "orderNumber": order_number,
            "tableNumber": 5,
            "items": [{"name": "Momo", "quantity": 2, "price": 100}],
            "subtotal": 200,
            "tax": 20,
            "total": 220,
        }
        body.update(over)
        return body
    return make
