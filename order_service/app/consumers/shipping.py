from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

import structlog

from ..events import OrderShipped, PaymentProcessed
from ..integrations.carrier import CarrierPort
from ..integrations.latency import LatencyProvider, NoLatency
from ..messaging.bus import EventBus
from ..models import OrderStatus
from ..store import OrderStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Shipment:
    carrier: str
    tracking_number: str
    estimated_delivery: date


class ShippingConsumer:
    def __init__(
        self,
        bus: EventBus,
        orders: OrderStore,
        carrier: CarrierPort,
        latency: LatencyProvider | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.bus = bus
        self.orders = orders
        self.carrier = carrier
        self.latency = latency or NoLatency()
        self.today = today

    def start_listening(self) -> None:
        self.bus.subscribe(PaymentProcessed, self.process_payment_processed)

    def process_payment_processed(self, event: PaymentProcessed) -> None:
        """
        Received PaymentProcessed.
        Action: Prepare the shipment for a paid order -> SHIPPED, publish OrderShipped.
        """
        log = logger.bind(**event.log_context())
        if not event.success:
            log.info("Payment failed, skipping shipment")
            return

        try:
            if not self.orders.transition(
                event.order_id, OrderStatus.PREPARING_SHIPMENT, expected={OrderStatus.PAYMENT_CONFIRMED}
            ):
                log.warning("Order is not ready for shipment, skipping")
                return

            shipment = self.prepare_shipment(event.shipping_method)
            self.orders.set_tracking_number(event.order_id, shipment.tracking_number)

            if not self.orders.transition(
                event.order_id, OrderStatus.SHIPPED, expected={OrderStatus.PREPARING_SHIPMENT}
            ):
                log.warning("Order changed while preparing shipment", tracking_number=shipment.tracking_number)
                return

            log.info(
                "Order shipped",
                carrier=shipment.carrier,
                tracking_number=shipment.tracking_number,
                estimated_delivery=shipment.estimated_delivery.isoformat(),
            )
            self.bus.publish(
                OrderShipped.following(
                    event,
                    tracking_number=shipment.tracking_number,
                    carrier=shipment.carrier,
                    estimated_delivery=shipment.estimated_delivery,
                )
            )

        except Exception:
            log.exception("Error preparing shipment")

    def prepare_shipment(self, shipping_method: str) -> Shipment:
        self.latency.pause("shipping.select_carrier")
        carrier = self.carrier.choose_carrier()

        self.latency.pause("shipping.generate_label")
        tracking_number = self.carrier.tracking_number(carrier)

        self.latency.pause("shipping.package_items")
        self.latency.pause("shipping.schedule_pickup")

        return Shipment(
            carrier=carrier,
            tracking_number=tracking_number,
            estimated_delivery=self.carrier.estimated_delivery(shipping_method, self.today()),
        )
