"""Domain events for the Refunds bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from modules.core.events import DomainEvent, StatusChanged


@dataclass(frozen=True)
class RefundCreated(DomainEvent):
    order_id: UUID | None = None
    total_amount: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class RefundStatusChanged(StatusChanged):
    transaction_reference: str = ""


@dataclass(frozen=True)
class RefundGatewayFailed(DomainEvent):
    """The gateway declined or timed out; the refund moved to FAILED."""

    order_id: UUID | None = None
    reason: str = ""
