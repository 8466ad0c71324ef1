"""Shipment statuses and carrier-progress transitions."""

from types import MappingProxyType

from django.db import models


class ShipmentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    SHIPPED = "SHIPPED", "Shipped"
    IN_TRANSIT = "IN_TRANSIT", "In transit"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY", "Out for delivery"
    DELIVERED = "DELIVERED", "Delivered"
    CANCELLED = "CANCELLED", "Cancelled"
    RETURNED = "RETURNED", "Returned"


VALID_TRANSITIONS = MappingProxyType(
    {
        ShipmentStatus.PENDING: frozenset(
            {ShipmentStatus.SHIPPED, ShipmentStatus.CANCELLED}
        ),
        ShipmentStatus.SHIPPED: frozenset(
            {ShipmentStatus.IN_TRANSIT, ShipmentStatus.CANCELLED}
        ),
        ShipmentStatus.IN_TRANSIT: frozenset(
            {ShipmentStatus.OUT_FOR_DELIVERY, ShipmentStatus.CANCELLED}
        ),
        ShipmentStatus.OUT_FOR_DELIVERY: frozenset(
            {ShipmentStatus.DELIVERED, ShipmentStatus.RETURNED}
        ),
        ShipmentStatus.DELIVERED: frozenset(),
        ShipmentStatus.CANCELLED: frozenset(),
        ShipmentStatus.RETURNED: frozenset(),
    }
)
