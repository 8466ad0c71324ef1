"""Refund repository interface."""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.refunds.models import Refund


class IRefundRepository(IRepository["Refund"]):
    """Repository contract for the Refund aggregate (Refund + RefundItems)."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Refund:
        """Create a refund and its items atomically.

        ``data`` carries the refund columns plus ``items`` (list of dicts
        with ``order_item_id``, ``quantity``, ``amount``).
        """

    @abstractmethod
    def get_by_source(
        self, cancellation_id: Optional[UUID] = None, return_id: Optional[UUID] = None
    ) -> Optional[Refund]:
        """The live refund authorized by a cancellation or a return."""

    @abstractmethod
    def list_for_order(self, order_id: UUID) -> List[Refund]:
        """Live refunds of one order, newest first."""

    @abstractmethod
    def refunded_quantities(
        self, cancellation_id: Optional[UUID] = None, return_id: Optional[UUID] = None
    ) -> Dict[UUID, int]:
        """Units per order item already refunded (non-cancelled) for a source."""

    @abstractmethod
    def list_stuck(self, started_before: datetime) -> List[Refund]:
        """PROCESSING refunds whose processing started before the cutoff."""
