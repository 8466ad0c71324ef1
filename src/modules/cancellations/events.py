"""Domain events for the Cancellations bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from modules.core.events import DomainEvent, StatusChanged


@dataclass(frozen=True)
class CancellationRequested(DomainEvent):
    order_id: UUID | None = None
    requested_by: str = ""


@dataclass(frozen=True)
class CancellationApproved(StatusChanged):
    refundable_amount: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class CancellationRejected(StatusChanged):
    """Raised when an operator rejects a cancellation."""


@dataclass(frozen=True)
class CancellationWithdrawn(DomainEvent):
    order_id: UUID | None = None
