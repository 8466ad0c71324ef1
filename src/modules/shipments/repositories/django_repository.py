"""Django ORM implementation of the Shipment repository."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum

from modules.core.repositories.django_repository import VersionedDjangoRepository
from modules.shipments.constants import ShipmentStatus
from modules.shipments.models import Shipment, ShipmentItem
from modules.shipments.repositories.interfaces import IShipmentRepository

logger = structlog.get_logger(__name__)


class ShipmentDjangoRepository(VersionedDjangoRepository, IShipmentRepository):
    model = Shipment
    topic = "shipments"

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Shipment:
        items = data.pop("items", [])
        shipment = Shipment(**data)
        shipment.save()
        ShipmentItem.objects.bulk_create(
            [ShipmentItem(shipment=shipment, **item_data) for item_data in items]
        )
        logger.info(
            "shipment.persisted",
            shipment_id=str(shipment.id),
            order_id=str(shipment.order_id),
            item_count=len(items),
        )
        return shipment

    def get_by_id(self, id: str) -> Optional[Shipment]:
        try:
            return (
                Shipment.objects.alive()
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_by_tracking_number(self, tracking_number: str) -> Optional[Shipment]:
        return (
            Shipment.objects.alive()
            .prefetch_related("items")
            .filter(tracking_number=tracking_number)
            .first()
        )

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Shipment]:
        queryset = Shipment.objects.alive().prefetch_related("items")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_for_order(self, order_id: UUID) -> List[Shipment]:
        return self.list({"order_id": order_id})

    def shipped_quantities(self, order_id: UUID) -> Dict[UUID, int]:
        rows = (
            ShipmentItem.objects.filter(
                shipment__order_id=order_id,
                shipment__deleted_at__isnull=True,
            )
            .exclude(shipment__status=ShipmentStatus.CANCELLED)
            .values("order_item_id")
            .annotate(total=Sum("quantity"))
        )
        totals: Dict[UUID, int] = defaultdict(int)
        for row in rows:
            totals[row["order_item_id"]] += row["total"] or 0
        return dict(totals)
