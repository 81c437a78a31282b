"""Payment gateway port and simulated adapters.

There is no real payment provider behind this service. ``SimulatedGateway``
approves most charges at random; ``FixedOutcomeGateway`` always gives the
configured answer and records every call, for tests and demos.
"""

import random
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass


def new_transaction_id() -> str:
    return f"TXN_{uuid.uuid4().hex[:8].upper()}"


@dataclass(frozen=True)
class AuthorizationResult:
    """Result of a payment authorization attempt."""

    success: bool
    transaction_id: str
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def authorize(self, order_id: int, amount: float, payment_method: str) -> AuthorizationResult:
        """Authorize a charge for the order."""
        ...


class SimulatedGateway(PaymentGateway):
    """Approves a charge with probability ``success_rate``."""

    def __init__(self, success_rate: float = 0.95, rng: random.Random | None = None):
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be between 0 and 1")
        self.success_rate = success_rate
        self._rng = rng or random.Random()

    def authorize(self, order_id: int, amount: float, payment_method: str) -> AuthorizationResult:
        if self._rng.random() < self.success_rate:
            return AuthorizationResult(success=True, transaction_id=new_transaction_id())
        return AuthorizationResult(
            success=False,
            transaction_id=new_transaction_id(),
            failure_reason="Payment declined",
        )


class FixedOutcomeGateway(PaymentGateway):
    """Configurable gateway with a deterministic outcome."""

    def __init__(self, should_succeed: bool = True, failure_reason: str = "Payment declined"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Payment declined") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def authorize(self, order_id: int, amount: float, payment_method: str) -> AuthorizationResult:
        self.calls.append({"order_id": order_id, "amount": amount, "payment_method": payment_method})

        if self.should_succeed:
            return AuthorizationResult(success=True, transaction_id=new_transaction_id())
        return AuthorizationResult(
            success=False,
            transaction_id=new_transaction_id(),
            failure_reason=self.failure_reason,
        )
