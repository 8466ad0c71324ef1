"""Shipment repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.shipments.models import Shipment


class IShipmentRepository(IRepository["Shipment"]):
    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Shipment:
        """Create a shipment and its items atomically."""

    @abstractmethod
    def get_by_tracking_number(self, tracking_number: str) -> Optional[Shipment]:
        """Live shipment carrying *tracking_number*, if any."""

    @abstractmethod
    def list_for_order(self, order_id: UUID) -> List[Shipment]:
        """Live shipments of one order, newest first."""

    @abstractmethod
    def shipped_quantities(self, order_id: UUID) -> Dict[UUID, int]:
        """Units per order item in non-cancelled shipments."""
