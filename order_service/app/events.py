"""Domain events exchanged by the fulfillment stages.

Events are immutable, fire-and-forget messages. Each carries a snapshot of the
order it concerns plus the fields specific to its stage. The correlation id is
minted once per order and copied to every event that follows from it.
"""

import uuid
from datetime import date, datetime, timezone
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


def new_correlation_id() -> str:
    return str(uuid.uuid4())


def new_event_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8].upper()}"


class OrderEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_prefix: ClassVar[str] = "ORDER_EVENT"

    event_id: str
    correlation_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    order_id: int
    user_id: int
    product_ids: tuple[int, ...]
    total_amount: float
    payment_method: str
    shipping_method: str = "STANDARD"

    @classmethod
    def from_order(cls, order, correlation_id: str, **fields):
        """Build the event from a persisted order row."""
        return cls(
            event_id=new_event_id(cls.event_prefix),
            correlation_id=correlation_id,
            order_id=order.id,
            user_id=order.user_id,
            product_ids=tuple(order.product_ids),
            total_amount=order.total_amount,
            payment_method=order.payment_method,
            shipping_method=order.shipping_method,
            **fields,
        )

    @classmethod
    def following(cls, previous: "OrderEvent", **fields):
        """Build the next event in an order's chain, keeping its payload and correlation id."""
        return cls(
            event_id=new_event_id(cls.event_prefix),
            correlation_id=previous.correlation_id,
            order_id=previous.order_id,
            user_id=previous.user_id,
            product_ids=previous.product_ids,
            total_amount=previous.total_amount,
            payment_method=previous.payment_method,
            shipping_method=previous.shipping_method,
            **fields,
        )

    def log_context(self) -> dict:
        return {
            "event_type": type(self).__name__,
            "event_id": self.event_id,
            "order_id": self.order_id,
            "correlation_id": self.correlation_id,
        }


class OrderCreated(OrderEvent):
    event_prefix: ClassVar[str] = "ORDER_CREATED"


class InventoryReserved(OrderEvent):
    event_prefix: ClassVar[str] = "INVENTORY_RESERVED"

    reserved_product_ids: tuple[int, ...]


class PaymentProcessed(OrderEvent):
    event_prefix: ClassVar[str] = "PAYMENT_PROCESSED"

    success: bool
    transaction_id: str
    amount: float
    failure_reason: str | None = None


class OrderShipped(OrderEvent):
    event_prefix: ClassVar[str] = "ORDER_SHIPPED"

    tracking_number: str
    carrier: str
    estimated_delivery: date

    @property
    def tracking_summary(self) -> str:
        return (
            f"Tracking: {self.tracking_number} | Carrier: {self.carrier} | "
            f"ETA: {self.estimated_delivery.strftime('%b %d, %Y')}"
        )
