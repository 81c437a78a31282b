"""Error taxonomy for the order service.

Validation problems surface synchronously (HTTP 400), missing records as 404,
and infrastructure failures in the synchronous path as 500. Failures inside
the asynchronous stages never propagate; they end up as an order status.
"""


class OrderServiceError(Exception):
    """Base class for every error raised by the order service."""


class ConfigurationError(OrderServiceError):
    """An environment variable holds an unusable value."""


class OrderValidationError(OrderServiceError):
    """The caller supplied a malformed order request."""


class OrderNotFoundError(OrderServiceError):
    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class ProductNotFoundError(OrderServiceError):
    def __init__(self, product_id):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class OrderProcessingError(OrderServiceError):
    """Persisting or publishing a new order failed."""


class EventBusClosedError(OrderServiceError):
    """An event was published after the bus was shut down."""
