"""Domain events for the Returns bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from modules.core.events import DomainEvent, StatusChanged


@dataclass(frozen=True)
class ReturnRequested(DomainEvent):
    order_id: UUID | None = None
    requested_by: str = ""


@dataclass(frozen=True)
class ReturnApproved(StatusChanged):
    refundable_amount: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class ReturnRejected(StatusChanged):
    """Raised when an operator rejects a return."""


@dataclass(frozen=True)
class ReturnWithdrawn(DomainEvent):
    order_id: UUID | None = None
