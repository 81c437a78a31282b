"""Runtime settings, read from environment variables."""

import os
from dataclasses import dataclass

from .exceptions import ConfigurationError

_TRUTHY = {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./orders.db"
    environment: str = "development"
    # Worker pool for stage handlers
    bus_min_workers: int = 2
    bus_max_workers: int = 8
    bus_queue_capacity: int = 100
    # Simulated integrations
    payment_success_rate: float = 0.95
    simulated_latency: bool = False
    latency_scale: float = 1.0

    def __post_init__(self):
        if self.bus_min_workers < 0:
            raise ConfigurationError("EVENT_BUS_MIN_WORKERS cannot be negative")
        if self.bus_max_workers < 1:
            raise ConfigurationError("EVENT_BUS_MAX_WORKERS must be at least 1")
        if self.bus_min_workers > self.bus_max_workers:
            raise ConfigurationError("EVENT_BUS_MIN_WORKERS cannot exceed EVENT_BUS_MAX_WORKERS")
        if self.bus_queue_capacity < 0:
            raise ConfigurationError("EVENT_BUS_QUEUE_CAPACITY cannot be negative")
        if not 0.0 <= self.payment_success_rate <= 1.0:
            raise ConfigurationError("PAYMENT_SUCCESS_RATE must be between 0 and 1")
        if self.latency_scale < 0:
            raise ConfigurationError("LATENCY_SCALE cannot be negative")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment, falling back to defaults."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            environment=os.getenv("ENVIRONMENT", cls.environment).lower(),
            bus_min_workers=_env_int("EVENT_BUS_MIN_WORKERS", cls.bus_min_workers),
            bus_max_workers=_env_int("EVENT_BUS_MAX_WORKERS", cls.bus_max_workers),
            bus_queue_capacity=_env_int("EVENT_BUS_QUEUE_CAPACITY", cls.bus_queue_capacity),
            payment_success_rate=_env_float("PAYMENT_SUCCESS_RATE", cls.payment_success_rate),
            simulated_latency=_env_bool("SIMULATED_LATENCY", cls.simulated_latency),
            latency_scale=_env_float("LATENCY_SCALE", cls.latency_scale),
        )
