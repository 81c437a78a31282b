"""Artificial latency for the simulated integrations.

Stages call ``pause(step)`` where a real system would wait on I/O. The default
provider does nothing, so the pipeline runs as fast as the database allows.
"""

import time
from abc import ABC, abstractmethod
from collections.abc import Callable

# Seconds per simulated step.
STEP_DELAYS = {
    "inventory.reserve_product": 0.1,
    "payment.validate_method": 0.5,
    "payment.check_card": 0.3,
    "payment.process_transaction": 0.8,
    "payment.authorize": 0.4,
    "shipping.select_carrier": 0.3,
    "shipping.generate_label": 0.4,
    "shipping.package_items": 0.6,
    "shipping.schedule_pickup": 0.3,
    "notification.order_created": 0.2,
    "notification.inventory_reserved": 0.15,
    "notification.payment_processed": 0.18,
    "notification.order_shipped": 0.25,
}


class LatencyProvider(ABC):
    @abstractmethod
    def pause(self, step: str) -> None: ...


class NoLatency(LatencyProvider):
    def pause(self, step: str) -> None:
        return None


class SimulatedLatency(LatencyProvider):
    """Sleeps for the step's delay, multiplied by ``scale``."""

    def __init__(self, scale: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        if scale < 0:
            raise ValueError("scale cannot be negative")
        self.scale = scale
        self._sleep = sleep

    def pause(self, step: str) -> None:
        delay = STEP_DELAYS.get(step, 0.0) * self.scale
        if delay > 0:
            self._sleep(delay)
