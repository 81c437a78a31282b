"""Carrier port: carrier choice, tracking numbers and delivery estimates."""

import random
from abc import ABC, abstractmethod
from datetime import date, timedelta

CARRIERS = ("FedEx", "UPS", "DHL", "USPS", "Amazon Logistics")

TRACKING_PREFIXES = {
    "FEDEX": "FDX",
    "UPS": "UPS",
    "DHL": "DHL",
    "USPS": "USP",
    "AMAZON LOGISTICS": "AMZ",
}
DEFAULT_TRACKING_PREFIX = "TRK"

# Inclusive range of days until delivery, per shipping method.
DELIVERY_WINDOWS = {
    "STANDARD": (2, 5),
    "EXPRESS": (1, 2),
    "OVERNIGHT": (1, 1),
}


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    @abstractmethod
    def choose_carrier(self) -> str: ...

    @abstractmethod
    def tracking_number(self, carrier: str) -> str: ...

    @abstractmethod
    def estimated_delivery(self, shipping_method: str, today: date) -> date: ...


class RandomCarrier(CarrierPort):
    """Picks carriers and tracking digits from an injectable random source.

    Pass a seeded ``random.Random`` to make every choice reproducible.
    """

    def __init__(self, rng: random.Random | None = None, carriers: tuple[str, ...] = CARRIERS):
        if not carriers:
            raise ValueError("at least one carrier is required")
        self._rng = rng or random.Random()
        self.carriers = carriers

    def choose_carrier(self) -> str:
        return self._rng.choice(self.carriers)

    def tracking_number(self, carrier: str) -> str:
        prefix = TRACKING_PREFIXES.get(carrier.upper(), DEFAULT_TRACKING_PREFIX)
        return f"{prefix}{self._rng.randrange(100_000_000):08d}"

    def estimated_delivery(self, shipping_method: str, today: date) -> date:
        low, high = DELIVERY_WINDOWS.get(shipping_method.upper(), DELIVERY_WINDOWS["STANDARD"])
        return today + timedelta(days=self._rng.randint(low, high))
