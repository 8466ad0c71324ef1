"""Return request and its lines.

A return targets units of a delivered order.  Each line carries the
inspection remarks recorded for the returned units.
"""

from __future__ import annotations

from django.db import models

from modules.orders.models import OrderItemRequest, OrderItemRequestLine
from modules.returns.constants import ReturnStatus


class Return(OrderItemRequest):
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="returns",
    )
    status = models.CharField(
        max_length=20,
        choices=ReturnStatus.choices,
        default=ReturnStatus.PENDING,
    )

    class Meta(OrderItemRequest.Meta):
        db_table = "returns"
        indexes = [
            models.Index(fields=["order", "status"], name="returns_order_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Return {self.id} ({self.status})"


class ReturnItem(OrderItemRequestLine):
    return_request = models.ForeignKey(
        "returns.Return",
        on_delete=models.CASCADE,
        related_name="items",
    )
    order_item = models.ForeignKey(
        "orders.OrderItem",
        on_delete=models.PROTECT,
        related_name="return_items",
    )
    remarks = models.TextField(blank=True, default="")

    class Meta(OrderItemRequestLine.Meta):
        db_table = "return_items"
        constraints = [
            models.UniqueConstraint(
                fields=["return_request", "order_item"],
                name="return_items_unique_item",
            ),
        ]
