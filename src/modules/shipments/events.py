"""Domain events for the Shipments bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from modules.core.events import DomainEvent, StatusChanged


@dataclass(frozen=True)
class ShipmentCreated(DomainEvent):
    order_id: UUID | None = None
    tracking_number: str = ""


@dataclass(frozen=True)
class ShipmentStatusChanged(StatusChanged):
    """Raised on every carrier progress update."""
