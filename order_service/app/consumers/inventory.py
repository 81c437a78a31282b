from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from ..events import InventoryReserved, OrderCreated, PaymentProcessed
from ..exceptions import ProductNotFoundError
from ..integrations.latency import LatencyProvider, NoLatency
from ..messaging.bus import EventBus
from ..models import OrderStatus
from ..store import OrderStore, ProductStore, StockOutcome

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReservationResult:
    """Outcome of reserving one unit for every product reference of an order.

    On failure nothing stays reserved: ``released_product_ids`` lists the units
    that were taken before ``failed_product_id`` and have been put back.
    """

    reserved_product_ids: tuple[int, ...] = ()
    failure: StockOutcome | None = None
    failed_product_id: int | None = None
    released_product_ids: tuple[int, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.failure is None


class InventoryConsumer:
    def __init__(
        self,
        bus: EventBus,
        orders: OrderStore,
        products: ProductStore,
        latency: LatencyProvider | None = None,
    ):
        self.bus = bus
        self.orders = orders
        self.products = products
        self.latency = latency or NoLatency()

    def start_listening(self) -> None:
        self.bus.subscribe(OrderCreated, self.process_order_created)
        self.bus.subscribe(PaymentProcessed, self.process_payment_processed)

    def process_order_created(self, event: OrderCreated) -> None:
        """
        Received OrderCreated.
        Action: Reserve one unit per product -> publish InventoryReserved OR cancel the order.
        """
        log = logger.bind(**event.log_context())
        log.info("Starting inventory check", products=len(event.product_ids))

        reservation = None
        try:
            order = self.orders.get_order(event.order_id)
            if order is None:
                log.error("Order not found for inventory check")
                return
            if order.status != OrderStatus.CREATED:
                log.warning("Order is not awaiting inventory, skipping", status=order.status)
                return

            reservation = self.reserve_products(event.product_ids)

            if not reservation.succeeded:
                self.orders.transition(event.order_id, OrderStatus.CANCELLED, expected={OrderStatus.CREATED})
                log.warning(
                    "Inventory check failed, order cancelled",
                    reason=reservation.failure.value,
                    product_id=reservation.failed_product_id,
                    released=len(reservation.released_product_ids),
                )
                return

            if not self.orders.transition(
                event.order_id, OrderStatus.INVENTORY_RESERVED, expected={OrderStatus.CREATED}
            ):
                log.warning("Order changed during reservation, releasing stock")
                self.release_products(reservation.reserved_product_ids)
                return

            log.info("Inventory reserved", reserved=len(reservation.reserved_product_ids))
            self.bus.publish(
                InventoryReserved.following(event, reserved_product_ids=reservation.reserved_product_ids)
            )

        except Exception:
            log.exception("Error processing order for inventory")
            try:
                cancelled = self.orders.transition(
                    event.order_id,
                    OrderStatus.CANCELLED,
                    expected={OrderStatus.CREATED, OrderStatus.INVENTORY_RESERVED},
                )
                if cancelled and reservation is not None and reservation.succeeded:
                    self.release_products(reservation.reserved_product_ids)
            except Exception:
                log.exception("Failed to update order status on error")

    def process_payment_processed(self, event: PaymentProcessed) -> None:
        """
        Received PaymentProcessed.
        Action: Put the reserved stock back when the payment failed.
        """
        if event.success:
            return

        log = logger.bind(**event.log_context())
        log.info("Payment failed, releasing reserved stock", products=len(event.product_ids))
        released = self.release_products(event.product_ids)
        log.info("Stock released for failed payment", released=len(released))

    def reserve_products(self, product_ids: Iterable[int]) -> ReservationResult:
        """Reserve one unit per product reference, in order.

        Stops at the first missing or exhausted product and releases whatever
        was already taken. Unexpected errors release the same way and re-raise.
        """
        reserved: list[int] = []
        try:
            for product_id in product_ids:
                outcome = self.products.reserve_unit(product_id)
                if outcome is not StockOutcome.RESERVED:
                    logger.warning("Product cannot be reserved", product_id=product_id, reason=outcome.value)
                    released = self.release_products(reserved)
                    return ReservationResult(
                        failure=outcome,
                        failed_product_id=product_id,
                        released_product_ids=tuple(released),
                    )

                reserved.append(product_id)
                logger.debug("Reserved 1 unit", product_id=product_id)
                self.latency.pause("inventory.reserve_product")
        except Exception:
            self.release_products(reserved)
            raise

        return ReservationResult(reserved_product_ids=tuple(reserved))

    def release_products(self, product_ids: Iterable[int]) -> list[int]:
        """Return one unit per product reference to stock.

        Each release is independent; a failing one is logged and skipped.
        Returns the ids that were put back.
        """
        released = []
        for product_id in product_ids:
            try:
                if self.products.release_unit(product_id):
                    released.append(product_id)
                else:
                    logger.warning("Product vanished before release", product_id=product_id)
            except Exception:
                logger.exception("Failed to release reservation", product_id=product_id)
        return released

    def is_product_in_stock(self, product_id: int) -> bool:
        product = self.products.get_product(product_id)
        return product is not None and product.stock_quantity > 0

    def product_stock_level(self, product_id: int) -> int:
        product = self.products.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product.stock_quantity

    def update_product_stock(self, product_id: int, stock_quantity: int):
        if stock_quantity < 0:
            raise ValueError("stock_quantity cannot be negative")
        product = self.products.set_stock(product_id, stock_quantity)
        if product is None:
            raise ProductNotFoundError(product_id)
        logger.info("Stock updated", product_id=product_id, stock_quantity=stock_quantity)
        return product
