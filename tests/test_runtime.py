"""Tests for runtime wiring."""

from order_service.app.config import Settings
from order_service.app.events import InventoryReserved, OrderCreated, OrderShipped, PaymentProcessed
from order_service.app.integrations import NoLatency, SimulatedGateway, SimulatedLatency
from order_service.app.runtime import build_runtime


class TestBuildRuntime:
    def test_subscribes_every_stage(self, runtime):
        assert len(runtime.bus.handlers_for(OrderCreated)) == 2
        assert len(runtime.bus.handlers_for(InventoryReserved)) == 2
        assert len(runtime.bus.handlers_for(PaymentProcessed)) == 3
        assert len(runtime.bus.handlers_for(OrderShipped)) == 1

    def test_defaults_come_from_settings(self, database_url):
        settings = Settings(database_url=database_url, simulated_latency=True, latency_scale=0.01, payment_success_rate=1.0)
        runtime = build_runtime(settings)
        try:
            assert isinstance(runtime.payment.gateway, SimulatedGateway)
            assert runtime.payment.gateway.success_rate == 1.0
            assert isinstance(runtime.inventory.latency, SimulatedLatency)
            assert runtime.bus.max_workers == settings.bus_max_workers
        finally:
            runtime.shutdown(timeout=5)

    def test_latency_off_by_default(self, runtime):
        assert isinstance(runtime.shipping.latency, NoLatency)

    def test_shutdown_closes_bus(self, database_url):
        runtime = build_runtime(Settings(database_url=database_url))
        runtime.shutdown(timeout=5)

        assert runtime.bus.closed
