"""Wiring: builds the database, bus, stores, stage consumers and orchestrator.

Every external collaborator can be replaced, which is how the tests pin down
payment outcomes and carrier choices.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

import structlog

from .config import Settings
from .consumers import InventoryConsumer, NotificationConsumer, PaymentConsumer, ShippingConsumer
from .database import create_tables, make_engine, make_session_factory
from .integrations import (
    CarrierPort,
    LatencyProvider,
    NoLatency,
    NotificationChannel,
    PaymentGateway,
    RandomCarrier,
    SimulatedGateway,
    SimulatedLatency,
    default_channels,
)
from .messaging import EventBus
from .orchestrator import OrderOrchestrator
from .store import OrderStore, ProductStore

logger = structlog.get_logger(__name__)


@dataclass
class Runtime:
    settings: Settings
    engine: object
    bus: EventBus
    orders: OrderStore
    products: ProductStore
    orchestrator: OrderOrchestrator
    inventory: InventoryConsumer
    payment: PaymentConsumer
    shipping: ShippingConsumer
    notification: NotificationConsumer

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        return self.bus.wait_until_idle(timeout)

    def shutdown(self, timeout: float | None = None) -> None:
        self.bus.shutdown(wait=True, timeout=timeout)
        self.engine.dispose()


def build_runtime(
    settings: Settings | None = None,
    *,
    gateway: PaymentGateway | None = None,
    carrier: CarrierPort | None = None,
    channels: dict[str, NotificationChannel] | None = None,
    latency: LatencyProvider | None = None,
    today: Callable[[], date] = date.today,
) -> Runtime:
    settings = settings or Settings.from_env()

    engine = make_engine(settings.database_url)
    create_tables(engine)
    session_factory = make_session_factory(engine)

    if latency is None:
        latency = SimulatedLatency(settings.latency_scale) if settings.simulated_latency else NoLatency()

    bus = EventBus(
        min_workers=settings.bus_min_workers,
        max_workers=settings.bus_max_workers,
        queue_capacity=settings.bus_queue_capacity,
    )
    orders = OrderStore(session_factory)
    products = ProductStore(session_factory)

    inventory = InventoryConsumer(bus, orders, products, latency)
    payment = PaymentConsumer(bus, orders, gateway or SimulatedGateway(settings.payment_success_rate), latency)
    shipping = ShippingConsumer(bus, orders, carrier or RandomCarrier(), latency, today)
    notification = NotificationConsumer(bus, channels if channels is not None else default_channels(), latency)

    for consumer in (inventory, payment, shipping, notification):
        consumer.start_listening()

    logger.info(
        "Runtime started",
        environment=settings.environment,
        workers=settings.bus_max_workers,
        simulated_latency=settings.simulated_latency,
    )
    return Runtime(
        settings=settings,
        engine=engine,
        bus=bus,
        orders=orders,
        products=products,
        orchestrator=OrderOrchestrator(bus, orders),
        inventory=inventory,
        payment=payment,
        shipping=shipping,
        notification=notification,
    )
