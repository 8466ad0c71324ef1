"""Cancellation request and its lines.

A cancellation targets units an order has not yet received.  Withdrawn
requests are soft-deleted and no longer count as active.
"""

from __future__ import annotations

from django.db import models

from modules.cancellations.constants import CancellationStatus
from modules.orders.models import OrderItemRequest, OrderItemRequestLine


class Cancellation(OrderItemRequest):
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="cancellations",
    )
    status = models.CharField(
        max_length=20,
        choices=CancellationStatus.choices,
        default=CancellationStatus.PENDING,
    )

    class Meta(OrderItemRequest.Meta):
        db_table = "cancellations"
        indexes = [
            models.Index(fields=["order", "status"], name="cancellations_order_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Cancellation {self.id} ({self.status})"


class CancellationItem(OrderItemRequestLine):
    cancellation = models.ForeignKey(
        "cancellations.Cancellation",
        on_delete=models.CASCADE,
        related_name="items",
    )
    order_item = models.ForeignKey(
        "orders.OrderItem",
        on_delete=models.PROTECT,
        related_name="cancellation_items",
    )

    class Meta(OrderItemRequestLine.Meta):
        db_table = "cancellation_items"
        constraints = [
            models.UniqueConstraint(
                fields=["cancellation", "order_item"],
                name="cancellation_items_unique_item",
            ),
        ]
