from typing import NamedTuple

import structlog

from ..events import InventoryReserved, OrderCreated, OrderEvent, OrderShipped, PaymentProcessed
from ..integrations.channels import DEEP_LINK, EMAIL, PUSH, SMS, NotificationChannel
from ..integrations.latency import LatencyProvider, NoLatency
from ..messaging.bus import EventBus

logger = structlog.get_logger(__name__)


class Message(NamedTuple):
    channel: str
    kind: str
    title: str
    body: str


def order_created_messages(event: OrderCreated) -> list[Message]:
    order_id = event.order_id
    return [
        Message(EMAIL, "ORDER_CONFIRMATION", f"Order #{order_id} received",
                "Your order has been received and is being processed"),
        Message(SMS, "ORDER_CONFIRMATION", "", f"Order #{order_id} received! We're processing it now."),
        Message(PUSH, "ORDER_CONFIRMATION", "Order Confirmed", "Your order is being processed"),
    ]


def inventory_reserved_messages(event: InventoryReserved) -> list[Message]:
    order_id = event.order_id
    return [
        Message(EMAIL, "INVENTORY_RESERVED", f"Order #{order_id} items reserved",
                "All items in your order are available and have been reserved"),
        Message(SMS, "INVENTORY_RESERVED", "", "Great news! All items are available. Processing payment now."),
        Message(PUSH, "INVENTORY_RESERVED", "Items Reserved", "All your items are available and reserved"),
    ]


def payment_processed_messages(event: PaymentProcessed) -> list[Message]:
    order_id = event.order_id
    if event.success:
        return [
            Message(EMAIL, "PAYMENT_SUCCESS", f"Order #{order_id} payment confirmed",
                    "Payment processed successfully! Your order is being prepared for shipment."),
            Message(SMS, "PAYMENT_SUCCESS", "", f"Payment confirmed! Order #{order_id} is being prepared."),
            Message(PUSH, "PAYMENT_SUCCESS", "Payment Confirmed", "Your order is being prepared for shipment"),
        ]
    return [
        Message(EMAIL, "PAYMENT_FAILED", f"Order #{order_id} payment failed",
                "Payment processing failed. Please update your payment method."),
        Message(SMS, "PAYMENT_FAILED", "", f"Payment failed for Order #{order_id}. Please update payment method."),
        Message(PUSH, "PAYMENT_FAILED", "Payment Failed", "Please update your payment method"),
    ]


def order_shipped_messages(event: OrderShipped) -> list[Message]:
    order_id = event.order_id
    tracking = event.tracking_summary
    return [
        Message(EMAIL, "ORDER_SHIPPED", f"Order #{order_id} shipped", f"Your order has been shipped! {tracking}"),
        Message(SMS, "ORDER_SHIPPED", "", f"Order #{order_id} shipped! {tracking}"),
        Message(PUSH, "ORDER_SHIPPED", "Order Shipped", f"Your package is on the way! {tracking}"),
        Message(DEEP_LINK, "TRACKING_AVAILABLE", "Track your package", "Click to track your shipment"),
    ]


class NotificationConsumer:
    """Tells the customer about every step of the order, on every channel.

    Never touches order state. Each channel is tried independently, so one
    broken provider does not silence the others.
    """

    def __init__(
        self,
        bus: EventBus,
        channels: dict[str, NotificationChannel],
        latency: LatencyProvider | None = None,
    ):
        self.bus = bus
        self.channels = channels
        self.latency = latency or NoLatency()

    def start_listening(self) -> None:
        self.bus.subscribe(OrderCreated, self.process_order_created)
        self.bus.subscribe(InventoryReserved, self.process_inventory_reserved)
        self.bus.subscribe(PaymentProcessed, self.process_payment_processed)
        self.bus.subscribe(OrderShipped, self.process_order_shipped)

    def process_order_created(self, event: OrderCreated) -> None:
        self.latency.pause("notification.order_created")
        self.notify(event, order_created_messages(event))

    def process_inventory_reserved(self, event: InventoryReserved) -> None:
        self.latency.pause("notification.inventory_reserved")
        self.notify(event, inventory_reserved_messages(event))

    def process_payment_processed(self, event: PaymentProcessed) -> None:
        self.latency.pause("notification.payment_processed")
        self.notify(event, payment_processed_messages(event))

    def process_order_shipped(self, event: OrderShipped) -> None:
        self.latency.pause("notification.order_shipped")
        self.notify(event, order_shipped_messages(event))

    def notify(self, event: OrderEvent, messages: list[Message]) -> int:
        """Send each message on its channel. Returns how many were delivered."""
        log = logger.bind(**event.log_context())
        delivered = sum(self.send(event.order_id, message) for message in messages)
        log.info("Notifications sent", delivered=delivered, attempted=len(messages))
        return delivered

    def send(self, order_id: int, message: Message) -> bool:
        channel = self.channels.get(message.channel)
        if channel is None:
            logger.warning("Unknown notification channel", channel=message.channel, order_id=order_id)
            return False

        try:
            result = channel.send(order_id, message.kind, message.title, message.body)
        except Exception:
            logger.exception("Notification channel raised", channel=message.channel, order_id=order_id)
            return False

        if result.get("status") != "sent":
            logger.warning(
                "Notification not delivered",
                channel=message.channel,
                order_id=order_id,
                kind=message.kind,
                error=result.get("error"),
            )
            return False
        return True

    def send_custom_notification(self, order_id: int, channel: str, kind: str, message: str) -> bool:
        """Send an ad-hoc message, e.g. from an admin tool."""
        logger.info("Sending custom notification", order_id=order_id, channel=channel, kind=kind)
        return self.send(order_id, Message(channel.upper(), kind, kind.replace("_", " ").title(), message))
