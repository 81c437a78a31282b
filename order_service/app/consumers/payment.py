import structlog

from ..events import InventoryReserved, PaymentProcessed
from ..integrations.latency import LatencyProvider, NoLatency
from ..integrations.payment import AuthorizationResult, PaymentGateway
from ..messaging.bus import EventBus
from ..models import OrderStatus
from ..store import OrderStore

logger = structlog.get_logger(__name__)

AUTHORIZATION_STEPS = (
    "payment.validate_method",
    "payment.check_card",
    "payment.process_transaction",
    "payment.authorize",
)

PROCESSING_ERROR = "Payment processing error"


class PaymentConsumer:
    def __init__(
        self,
        bus: EventBus,
        orders: OrderStore,
        gateway: PaymentGateway,
        latency: LatencyProvider | None = None,
    ):
        self.bus = bus
        self.orders = orders
        self.gateway = gateway
        self.latency = latency or NoLatency()

    def start_listening(self) -> None:
        self.bus.subscribe(InventoryReserved, self.process_inventory_reserved)

    def process_inventory_reserved(self, event: InventoryReserved) -> None:
        """
        Received InventoryReserved.
        Action: Charge the customer -> PAYMENT_CONFIRMED or PAYMENT_FAILED, then publish PaymentProcessed.
        """
        log = logger.bind(**event.log_context())
        log.info("Processing payment", amount=event.total_amount, payment_method=event.payment_method)

        try:
            if not self.orders.transition(
                event.order_id, OrderStatus.PAYMENT_PROCESSED, expected={OrderStatus.INVENTORY_RESERVED}
            ):
                log.warning("Order is not awaiting payment, skipping")
                return

            result = self.authorize(event)
            outcome = OrderStatus.PAYMENT_CONFIRMED if result.success else OrderStatus.PAYMENT_FAILED

            if not self.orders.transition(event.order_id, outcome, expected={OrderStatus.PAYMENT_PROCESSED}):
                log.warning("Order changed during payment, result dropped", success=result.success)
                return

            if result.success:
                log.info("Payment confirmed", transaction_id=result.transaction_id)
            else:
                log.warning("Payment failed", transaction_id=result.transaction_id, reason=result.failure_reason)

            self.bus.publish(
                PaymentProcessed.following(
                    event,
                    success=result.success,
                    transaction_id=result.transaction_id,
                    amount=event.total_amount,
                    failure_reason=result.failure_reason,
                )
            )

        except Exception:
            log.exception("Error processing payment")
            try:
                failed = self.orders.transition(
                    event.order_id,
                    OrderStatus.PAYMENT_FAILED,
                    expected={OrderStatus.INVENTORY_RESERVED, OrderStatus.PAYMENT_PROCESSED},
                )
                if failed:
                    self.bus.publish(
                        PaymentProcessed.following(
                            event,
                            success=False,
                            transaction_id="",
                            amount=event.total_amount,
                            failure_reason=PROCESSING_ERROR,
                        )
                    )
            except Exception:
                log.exception("Failed to update order status on error")

    def authorize(self, event: InventoryReserved) -> AuthorizationResult:
        for step in AUTHORIZATION_STEPS:
            self.latency.pause(step)
        return self.gateway.authorize(event.order_id, event.total_amount, event.payment_method)
