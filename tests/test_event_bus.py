"""Tests for the in-process event bus."""

import threading
import time

import pytest

from order_service.app.events import InventoryReserved, OrderCreated
from order_service.app.exceptions import EventBusClosedError
from order_service.app.messaging import EventBus


def make_event(order_id: int = 1) -> OrderCreated:
    return OrderCreated(
        event_id=f"ORDER_CREATED_{order_id:08d}",
        correlation_id="corr-1",
        order_id=order_id,
        user_id=7,
        product_ids=(1, 2),
        total_amount=20.0,
        payment_method="CREDIT_CARD",
    )


class TestConstruction:
    def test_rejects_zero_workers(self):
        with pytest.raises(ValueError):
            EventBus(min_workers=0, max_workers=0)

    def test_rejects_min_above_max(self):
        with pytest.raises(ValueError):
            EventBus(min_workers=3, max_workers=2)

    def test_rejects_negative_queue(self):
        with pytest.raises(ValueError):
            EventBus(queue_capacity=-1)


class TestDelivery:
    def test_handlers_receive_events_of_their_type_only(self, bus, recorder):
        recorder.listen(OrderCreated)
        other = []
        bus.subscribe(InventoryReserved, other.append)

        bus.publish(make_event())

        assert bus.wait_until_idle(5)
        assert len(recorder.of_type(OrderCreated)) == 1
        assert other == []

    def test_handlers_keep_registration_order(self, bus):
        first, second = object(), object()
        bus.subscribe(OrderCreated, first)
        bus.subscribe(OrderCreated, second)

        assert bus.handlers_for(OrderCreated) == [first, second]

    def test_publish_without_handlers_is_a_no_op(self, bus):
        bus.publish(make_event())
        assert bus.wait_until_idle(1)

    def test_failing_handler_does_not_stop_others(self, bus, recorder):
        def explode(event):
            raise RuntimeError("boom")

        bus.subscribe(OrderCreated, explode)
        recorder.listen(OrderCreated)

        bus.publish(make_event())

        assert bus.wait_until_idle(5)
        assert len(recorder.of_type(OrderCreated)) == 1

    def test_handlers_run_off_the_publishing_thread(self, bus):
        threads = []
        bus.subscribe(OrderCreated, lambda event: threads.append(threading.current_thread().name))

        bus.publish(make_event())

        assert bus.wait_until_idle(5)
        assert threads[0].startswith("stage-worker")


class TestBackpressure:
    def test_saturated_pool_runs_handler_on_caller(self):
        bus = EventBus(min_workers=0, max_workers=1, queue_capacity=0)
        gate = threading.Event()
        started = threading.Event()
        threads = []

        def handler(event):
            name = threading.current_thread().name
            threads.append(name)
            if name.startswith("stage-worker"):
                started.set()
                gate.wait(5)

        bus.subscribe(OrderCreated, handler)
        try:
            bus.publish(make_event(1))
            assert started.wait(5)

            bus.publish(make_event(2))
            assert threads[-1] == threading.current_thread().name
        finally:
            gate.set()
            bus.shutdown(timeout=5)

    def test_wait_until_idle_times_out_while_busy(self):
        bus = EventBus(min_workers=0, max_workers=1)
        gate = threading.Event()
        bus.subscribe(OrderCreated, lambda event: gate.wait(5))
        try:
            bus.publish(make_event())
            assert bus.wait_until_idle(0.05) is False
        finally:
            gate.set()
            bus.shutdown(timeout=5)


class TestShutdown:
    def test_publish_after_shutdown_raises(self):
        bus = EventBus(min_workers=0, max_workers=1)
        bus.shutdown()

        assert bus.closed
        with pytest.raises(EventBusClosedError):
            bus.publish(make_event())

    def test_shutdown_drains_in_flight_chains(self):
        bus = EventBus(min_workers=1, max_workers=2)
        seen = []

        def forward(event):
            bus.publish(
                InventoryReserved.following(event, reserved_product_ids=event.product_ids)
            )

        bus.subscribe(OrderCreated, forward)
        bus.subscribe(InventoryReserved, seen.append)

        bus.publish(make_event())
        bus.shutdown(wait=True, timeout=5)

        assert len(seen) == 1
        assert seen[0].correlation_id == "corr-1"

    def test_shutdown_gives_up_on_stuck_handler(self):
        bus = EventBus(min_workers=0, max_workers=1)
        gate = threading.Event()
        bus.subscribe(OrderCreated, lambda event: gate.wait(5))
        bus.publish(make_event())
        try:
            started = time.monotonic()
            bus.shutdown(wait=True, timeout=0.05)

            assert time.monotonic() - started < 2
            assert bus.closed
        finally:
            gate.set()
