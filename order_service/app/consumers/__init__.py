from .inventory import InventoryConsumer, ReservationResult
from .notification import NotificationConsumer
from .payment import PaymentConsumer
from .shipping import ShippingConsumer

__all__ = [
    "InventoryConsumer",
    "NotificationConsumer",
    "PaymentConsumer",
    "ReservationResult",
    "ShippingConsumer",
]
