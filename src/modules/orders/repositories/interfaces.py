"""Order repository interfaces.

``IOrderRepository`` extends ``IRepository[Order]`` with the methods the
Order aggregate needs: atomic creation with items, status history
tracking and the read projection.

``IItemRequestRepository`` is the contract shared by the cancellation and
return repositories; both manage "some units of some order items" requests.

The Service Layer depends exclusively on these contracts.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children and
    OrderStatusHistory records.  Mutations must be atomic.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` carries the order columns plus ``items`` (list of dicts with
        ``product_id``, ``product_name``, ``unit_price``, ``quantity``,
        ``discount_amount``).
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched items and status history."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with its items, locking the order row."""

    @abstractmethod
    def claim(self, order: Order) -> Order:
        """Bump the order's version, compare-and-set against the loaded one."""

    @abstractmethod
    def get_with_details(self, id: str) -> Optional[Order]:
        """Retrieve an order with every sub-workflow prefetched."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        new_status: str,
        old_status: Optional[str] = None,
        changed_by: str = "",
        remarks: str = "",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def delivered_at(self, order_id: UUID) -> Optional[datetime]:
        """Timestamp of the latest move to DELIVERED, if any."""


class IItemRequestRepository(IRepository[Any]):
    """Contract shared by cancellation and return repositories."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Any:
        """Create a request header and its lines atomically.

        ``data`` carries ``order_id``, ``reason``, ``is_partial``,
        ``requested_by``, ``remarks`` and ``items`` (list of dicts with
        ``order_item_id``, ``quantity``, ``refundable_amount`` and any extra
        per-line columns).
        """

    @abstractmethod
    def list_for_order(self, order_id: UUID) -> List[Any]:
        """Live requests of one order, newest first."""

    @abstractmethod
    def replace_items(self, request: Any, items: List[Dict[str, Any]]) -> None:
        """Make *items* the complete line set of *request*.

        Lines are matched on ``order_item_id``: matches are updated in
        place, new ones inserted, missing ones removed.
        """

    @abstractmethod
    def approved_quantities(self, order_id: UUID) -> Dict[UUID, int]:
        """Units per order item already covered by approved requests."""

    @abstractmethod
    def active_order_item_ids(
        self, order_id: UUID, exclude_id: Optional[UUID] = None
    ) -> Set[UUID]:
        """Order items referenced by live PENDING requests of the order."""
