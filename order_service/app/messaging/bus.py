import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

import structlog

from ..events import OrderEvent
from ..exceptions import EventBusClosedError

logger = structlog.get_logger(__name__)

Handler = Callable[[OrderEvent], None]


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", repr(handler))


def _noop() -> None:
    return None


class EventBus:
    """
    In-process publish/subscribe bus that runs handlers on a bounded worker pool.

    Handlers are registered per event class and called for events of exactly
    that class. Publishing returns as soon as the handlers are scheduled. At
    most ``max_workers`` handlers run at once and ``queue_capacity`` more may
    wait; beyond that the publishing thread runs the handler itself.
    """

    def __init__(self, min_workers: int = 2, max_workers: int = 8, queue_capacity: int = 100):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if not 0 <= min_workers <= max_workers:
            raise ValueError("min_workers must be between 0 and max_workers")
        if queue_capacity < 0:
            raise ValueError("queue_capacity cannot be negative")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_capacity = queue_capacity

        self._handlers: dict[type, list[Handler]] = {}
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight = 0
        self._closed = False
        self._slots = threading.BoundedSemaphore(max_workers + queue_capacity)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="stage-worker")

        # Start the core workers up front instead of on first publish.
        for _ in range(min_workers):
            self._executor.submit(_noop)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        """Register a handler for one event class. Handlers keep registration order."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
        logger.debug("Handler subscribed", event_type=event_type.__name__, handler=_handler_name(handler))

    def handlers_for(self, event_type: type) -> list[Handler]:
        with self._lock:
            return list(self._handlers.get(event_type, ()))

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: OrderEvent) -> None:
        """
        Deliver an event to every handler registered for its class.

        Returns once each handler has been scheduled; it does not wait for them.
        """
        if self._closed:
            raise EventBusClosedError(f"Cannot publish {type(event).__name__}: event bus is shut down")

        handlers = self.handlers_for(type(event))
        if not handlers:
            logger.warning("No handlers registered for event", **event.log_context())
            return

        for handler in handlers:
            self._dispatch(handler, event)
        logger.debug("Event published", handlers=len(handlers), **event.log_context())

    def _dispatch(self, handler: Handler, event: OrderEvent) -> None:
        with self._lock:
            self._in_flight += 1

        if not self._slots.acquire(blocking=False):
            # Pool and queue are full: caller-runs.
            logger.warning(
                "Worker pool saturated, running handler on publishing thread",
                handler=_handler_name(handler),
                **event.log_context(),
            )
            self._run(handler, event, pooled=False)
            return

        try:
            self._executor.submit(self._run, handler, event, True)
        except RuntimeError as exc:
            self._slots.release()
            self._finished()
            raise EventBusClosedError("Event bus worker pool is shut down") from exc

    def _run(self, handler: Handler, event: OrderEvent, pooled: bool) -> None:
        try:
            handler(event)
        except Exception:
            logger.exception("Unhandled error in event handler", handler=_handler_name(handler), **event.log_context())
        finally:
            if pooled:
                self._slots.release()
            self._finished()

    def _finished(self) -> None:
        with self._idle:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.notify_all()

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until no handler is running or queued. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout=timeout)

    def shutdown(self, wait: bool = True, timeout: float | None = None) -> None:
        """Stop accepting events.

        With ``wait``, in-flight pipelines are allowed to finish first. If they are still
        running after ``timeout`` seconds, queued handlers are cancelled and the call
        returns without joining the workers.
        """
        drained = self.wait_until_idle(timeout) if wait else False
        with self._lock:
            self._closed = True
        if wait and not drained:
            logger.warning("Event bus did not drain before timeout, cancelling queued handlers")
            self._executor.shutdown(wait=False, cancel_futures=True)
        else:
            self._executor.shutdown(wait=wait)
        logger.info("Event bus shut down")
