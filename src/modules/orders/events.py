"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from modules.core.events import DomainEvent, StatusChanged


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created."""

    user_id: str = ""
    total_amount: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class OrderStatusChanged(StatusChanged):
    """Raised when an order status changes."""
