"""Canonical payment event.

Each gateway adapter turns its own webhook or callback payload into a
``PaymentEvent``; nothing past the adapter sees gateway-specific shapes.
"""

from dataclasses import dataclass, field
from enum import Enum


class PaymentOutcome(Enum):
    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"
    REFUNDED = "refunded"


class LookupKind(Enum):
    ORDER_NUMBER = "order_number"
    PAYMENT_REFERENCE = "payment_reference"
    TRANSACTION_ID = "transaction_id"
    TRANSACTION_FRAGMENT = "transaction_fragment"


@dataclass(frozen=True)
class OrderLookup:
    kind: LookupKind
    value: str


@dataclass(frozen=True)
class PaymentEvent:
    """A gateway-agnostic payment outcome bound to an order.

    ``lookups`` are tried in order, most specific first, until one finds a
    live order.
    """

    gateway: str
    outcome: PaymentOutcome
    lookups: tuple[OrderLookup, ...]
    gateway_transaction_id: str | None = None
    event_id: str | None = None
    reason: str | None = None
    raw: dict = field(default_factory=dict, compare=False)

    @property
    def order_reference(self) -> str | None:
        return self.lookups[0].value if self.lookups else None

    def log_context(self) -> dict:
        return {
            "gateway": self.gateway,
            "outcome": self.outcome.value,
            "order_reference": self.order_reference,
            "transaction_id": self.gateway_transaction_id,
            "event_id": self.event_id,
        }


def lookups(*pairs: tuple[LookupKind, str | None]) -> tuple[OrderLookup, ...]:
    """Build a lookup chain, skipping empty values and duplicates."""
    chain: list[OrderLookup] = []
    for kind, value in pairs:
        if value:
            candidate = OrderLookup(kind, str(value))
            if candidate not in chain:
                chain.append(candidate)
    return tuple(chain)
