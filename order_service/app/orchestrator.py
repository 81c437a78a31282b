"""Synchronous entry point of the fulfillment workflow.

``process_complete_order`` persists the order, publishes ``OrderCreated`` and
returns at once. Everything after that happens in the stage consumers, on the
event bus worker pool.
"""

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .events import OrderCreated, new_correlation_id
from .exceptions import EventBusClosedError, OrderNotFoundError, OrderProcessingError, OrderValidationError
from .messaging.bus import EventBus
from .models import CANCELLABLE_STATUSES, Order, OrderStatus
from .schemas import OrderResponse, PlaceOrderRequest
from .store import OrderStore

logger = structlog.get_logger(__name__)


def _describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "request"
        problems.append(f"{field}: {error['msg']}")
    return "; ".join(problems)


class OrderOrchestrator:
    def __init__(self, bus: EventBus, orders: OrderStore):
        self.bus = bus
        self.orders = orders

    def process_complete_order(self, request: PlaceOrderRequest | dict) -> OrderResponse:
        """Validate, persist and announce a new order.

        Returns the confirmation for the saved order, still in CREATED status.
        Raises OrderValidationError for a bad request and OrderProcessingError
        when the order cannot be saved or announced.
        """
        order_request = self._validate(request)
        log = logger.bind(user_id=order_request.user_id)
        log.info("Starting order processing", products=len(order_request.product_ids))

        try:
            order = self.orders.add_order(
                user_id=order_request.user_id,
                shipping_address=order_request.shipping_address,
                product_ids=order_request.product_ids,
                total_amount=float(order_request.total_amount),
                payment_method=order_request.payment_method,
                shipping_method=order_request.shipping_method,
                special_instructions=order_request.special_instructions,
                customer_email=order_request.customer_email,
                customer_phone=order_request.customer_phone,
            )
        except SQLAlchemyError as exc:
            log.exception("Failed to save order")
            raise OrderProcessingError("Failed to save order") from exc

        event = OrderCreated.from_order(order, correlation_id=new_correlation_id())
        log = log.bind(order_id=order.id, correlation_id=event.correlation_id)
        log.info("Order created")

        try:
            self.bus.publish(event)
        except EventBusClosedError as exc:
            log.error("Event bus is closed, cancelling order")
            self.orders.transition(order.id, OrderStatus.CANCELLED, expected={OrderStatus.CREATED})
            raise OrderProcessingError("Order could not be submitted for processing") from exc

        log.info("Order submitted for processing")
        return OrderResponse.placed(order)

    def _validate(self, request: PlaceOrderRequest | dict) -> PlaceOrderRequest:
        if isinstance(request, PlaceOrderRequest):
            return request
        if request is None:
            raise OrderValidationError("Order request is required")
        try:
            return PlaceOrderRequest.model_validate(request)
        except ValidationError as exc:
            raise OrderValidationError(_describe_validation_error(exc)) from exc

    def get_order(self, order_id: int) -> Order | None:
        return self.orders.get_order(order_id)

    def get_user_orders(self, user_id: int) -> list[Order]:
        return self.orders.list_orders_for_user(user_id)

    def get_order_status(self, order_id: int) -> OrderResponse:
        order = self.orders.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return OrderResponse.current_status(order)

    def update_order_status(self, order_id: int, status: OrderStatus) -> bool:
        """Set the status unconditionally. Returns False if the order does not exist."""
        updated = self.orders.transition(order_id, OrderStatus(status))
        if updated:
            logger.info("Order status updated", order_id=order_id, status=OrderStatus(status).value)
        return updated

    def add_tracking_number(self, order_id: int, tracking_number: str) -> bool:
        updated = self.orders.set_tracking_number(order_id, tracking_number)
        if updated:
            logger.info("Tracking number added", order_id=order_id, tracking_number=tracking_number)
        return updated

    def cancel_order(self, order_id: int) -> bool:
        """Cancel the order if it has not shipped or failed yet.

        Returns False when the order is past the point of cancellation and
        raises OrderNotFoundError when it does not exist.
        """
        if self.orders.transition(order_id, OrderStatus.CANCELLED, expected=CANCELLABLE_STATUSES):
            logger.info("Order cancelled", order_id=order_id)
            return True

        order = self.orders.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        logger.warning("Order cannot be cancelled", order_id=order_id, status=order.status)
        return False

    def get_order_statistics(self) -> dict:
        counts = self.orders.count_by_status()
        by_status = {status.value: counts.get(status.value, 0) for status in OrderStatus}
        return {"total": sum(counts.values()), "by_status": by_status}
