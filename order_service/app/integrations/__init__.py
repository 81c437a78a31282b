"""Simulated external collaborators: payment gateway, carrier, message channels, latency."""

from .carrier import CarrierPort, RandomCarrier
from .channels import LoggingChannel, NotificationChannel, default_channels
from .latency import LatencyProvider, NoLatency, SimulatedLatency
from .payment import AuthorizationResult, FixedOutcomeGateway, PaymentGateway, SimulatedGateway

__all__ = [
    "AuthorizationResult",
    "CarrierPort",
    "FixedOutcomeGateway",
    "LatencyProvider",
    "LoggingChannel",
    "NoLatency",
    "NotificationChannel",
    "PaymentGateway",
    "RandomCarrier",
    "SimulatedGateway",
    "SimulatedLatency",
    "default_channels",
]
