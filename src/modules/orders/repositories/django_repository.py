"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  Creation is
wrapped in ``transaction.atomic()`` so the Order aggregate (Order +
OrderItems) is persisted atomically.

Status writes go through ``VersionedDjangoRepository.save``: an
``UPDATE ... WHERE version = ?`` that raises ``ConcurrencyConflict`` when
another writer moved the order first.  Workflows that read remaining
quantities lock the order with ``select_for_update`` and ``claim`` it.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.core.repositories.django_repository import VersionedDjangoRepository
from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_DETAIL_PREFETCH = (
    "items",
    "status_history",
    "cancellations__items",
    "returns__items",
    "refunds__items",
    "shipments__items",
)


class OrderDjangoRepository(VersionedDjangoRepository, IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    model = Order
    topic = "orders"

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        Subtotal is the sum of the persisted line totals; the total follows
        from the order-level components.
        """
        items = data.get("items", [])
        order = Order(
            user_id=data["user_id"],
            payment_method=data["payment_method"],
            shipping_address=data["shipping_address"],
            billing_address=data["billing_address"],
            discount_amount=data.get("discount_amount", Decimal("0.00")),
            tax_amount=data.get("tax_amount", Decimal("0.00")),
            shipping_charges=data.get("shipping_charges", Decimal("0.00")),
            cancellation_policy_id=data.get("cancellation_policy_id"),
            return_policy_id=data.get("return_policy_id"),
            notes=data.get("notes", ""),
            subtotal_amount=data["subtotal_amount"],
            total_amount=data["total_amount"],
        )
        order.save()

        for item_data in items:
            OrderItem(
                order=order,
                product_id=item_data["product_id"],
                product_name=item_data["product_name"],
                unit_price=item_data["unit_price"],
                quantity=item_data["quantity"],
                discount_amount=item_data.get("discount_amount", Decimal("0.00")),
            ).save()

        self.flush_events(order)

        log = logger.bind(order_id=str(order.id), item_count=len(items))
        log.info("order.persisted")
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve a live order with items and status history.

        Returns ``None`` for non-existent, soft-deleted or invalid IDs.
        """
        try:
            return (
                Order.objects.alive()
                .prefetch_related("items", "status_history")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Like ``get_by_id`` but holds the order row until the transaction ends."""
        try:
            return (
                Order.objects.alive()
                .select_for_update()
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def claim(self, order: Order) -> Order:
        """Bump the version of *order* without touching other columns.

        Raises ``ConcurrencyConflict`` when another writer claimed or
        changed the order since it was read.
        """
        self._compare_and_set(order, [])
        return order

    def get_with_details(self, id: str) -> Optional[Order]:
        try:
            return (
                Order.objects.alive()
                .prefetch_related(*_DETAIL_PREFETCH)
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List live orders with optional filters.

        Supported filter keys include ``status``, ``user_id`` and
        ``created_at__range``.
        """
        queryset = Order.objects.alive().prefetch_related("items", "status_history")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_history(
        self,
        order_id: UUID,
        new_status: str,
        old_status: Optional[str] = None,
        changed_by: str = "",
        remarks: str = "",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=changed_by,
            remarks=remarks,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=new_status,
        )
        return history

    def delivered_at(self, order_id: UUID) -> Optional[datetime]:
        entry = (
            OrderStatusHistory.objects.filter(
                order_id=order_id, new_status=OrderStatus.DELIVERED
            )
            .order_by("-created_at")
            .first()
        )
        return entry.created_at if entry else None
