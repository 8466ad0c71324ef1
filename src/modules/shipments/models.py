"""Shipment and ShipmentItem models.

``tracking_number`` is unique across all shipments.  Units shipped per
order item across non-cancelled shipments never exceed the purchased
quantity (checked by the service).
"""

from __future__ import annotations

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.events import DomainEventMixin
from modules.core.models import BaseModel, VersionedModel
from modules.shipments.constants import ShipmentStatus


class Shipment(DomainEventMixin, VersionedModel):
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="shipments",
    )
    carrier = models.CharField(max_length=100)
    tracking_number = models.CharField(max_length=100, unique=True)
    status = models.CharField(
        max_length=20,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.PENDING,
    )
    estimated_delivery_at = models.DateTimeField(null=True, blank=True, default=None)
    shipped_at = models.DateTimeField(null=True, blank=True, default=None)
    delivered_at = models.DateTimeField(null=True, blank=True, default=None)
    created_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        db_table = "shipments"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["order", "status"], name="shipments_order_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.carrier} {self.tracking_number} ({self.status})"


class ShipmentItem(BaseModel):
    shipment = models.ForeignKey(
        "shipments.Shipment",
        on_delete=models.CASCADE,
        related_name="items",
    )
    order_item = models.ForeignKey(
        "orders.OrderItem",
        on_delete=models.PROTECT,
        related_name="shipment_items",
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    class Meta:
        db_table = "shipment_items"
        ordering = ["created_at", "id"]
