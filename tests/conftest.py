import random
import threading
from datetime import date

import pytest
from fastapi.testclient import TestClient

from order_service.app.config import Settings
from order_service.app.database import create_tables, make_engine, make_session_factory
from order_service.app.events import InventoryReserved, OrderCreated, OrderShipped, PaymentProcessed
from order_service.app.integrations import FixedOutcomeGateway, RandomCarrier, default_channels
from order_service.app.main import create_app
from order_service.app.messaging import EventBus
from order_service.app.runtime import build_runtime
from order_service.app.store import OrderStore, ProductStore

FIXED_TODAY = date(2024, 3, 1)
ALL_EVENT_TYPES = (OrderCreated, InventoryReserved, PaymentProcessed, OrderShipped)


def order_payload(product_ids, /, **overrides) -> dict:
    payload = {
        "user_id": 7,
        "product_ids": list(product_ids),
        "total_amount": 59.98,
        "shipping_address": "42 Wallaby Way, Sydney NSW 2000",
        "payment_method": "CREDIT_CARD",
        "shipping_method": "STANDARD",
        "customer_email": "p.sherman@example.com",
        "customer_phone": "+61255501234",
    }
    payload.update(overrides)
    return payload


class EventRecorder:
    """Subscribes to event types and keeps everything published, thread-safely."""

    def __init__(self, bus: EventBus):
        self.bus = bus
        self.events = []
        self._lock = threading.Lock()

    def listen(self, *event_types):
        for event_type in event_types or ALL_EVENT_TYPES:
            self.bus.subscribe(event_type, self._record)
        return self

    def _record(self, event):
        with self._lock:
            self.events.append(event)

    def of_type(self, event_type):
        with self._lock:
            return [event for event in self.events if type(event) is event_type]


# --- Persistence ---
@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'orders.db'}"


@pytest.fixture
def engine(database_url):
    engine = make_engine(database_url)
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def order_store(session_factory):
    return OrderStore(session_factory)


@pytest.fixture
def product_store(session_factory):
    return ProductStore(session_factory)


# --- Messaging ---
@pytest.fixture
def bus():
    bus = EventBus(min_workers=0, max_workers=2, queue_capacity=10)
    yield bus
    bus.shutdown(wait=True, timeout=5)


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)


# --- Full runtime ---
@pytest.fixture
def gateway():
    return FixedOutcomeGateway(should_succeed=True)


@pytest.fixture
def channels():
    return default_channels()


@pytest.fixture
def settings(database_url):
    return Settings(
        database_url=database_url,
        environment="test",
        bus_min_workers=1,
        bus_max_workers=4,
        bus_queue_capacity=50,
    )


@pytest.fixture
def runtime(settings, gateway, channels):
    runtime = build_runtime(
        settings,
        gateway=gateway,
        carrier=RandomCarrier(random.Random(42)),
        channels=channels,
        today=lambda: FIXED_TODAY,
    )
    yield runtime
    runtime.shutdown(timeout=10)


@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime)) as client:
        yield client
