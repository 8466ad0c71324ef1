"""Django ORM implementation of the Refund repository."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum

from modules.core.repositories.django_repository import VersionedDjangoRepository
from modules.refunds.constants import RefundStatus
from modules.refunds.models import Refund, RefundItem
from modules.refunds.repositories.interfaces import IRefundRepository

logger = structlog.get_logger(__name__)


class RefundDjangoRepository(VersionedDjangoRepository, IRefundRepository):
    """Concrete Refund repository backed by Django ORM."""

    model = Refund
    topic = "refunds"

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Refund:
        items = data.pop("items", [])
        refund = Refund(**data)
        refund.save()
        RefundItem.objects.bulk_create(
            [RefundItem(refund=refund, **item_data) for item_data in items]
        )
        logger.info(
            "refund.persisted",
            refund_id=str(refund.id),
            order_id=str(refund.order_id),
            item_count=len(items),
        )
        return refund

    def get_by_id(self, id: str) -> Optional[Refund]:
        try:
            return (
                Refund.objects.alive()
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Refund]:
        queryset = Refund.objects.alive().prefetch_related("items")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def get_by_source(
        self, cancellation_id: Optional[UUID] = None, return_id: Optional[UUID] = None
    ) -> Optional[Refund]:
        queryset = Refund.objects.alive().prefetch_related("items")
        if cancellation_id is not None:
            queryset = queryset.filter(cancellation_id=cancellation_id)
        elif return_id is not None:
            queryset = queryset.filter(return_request_id=return_id)
        else:
            return None
        return queryset.exclude(status=RefundStatus.CANCELLED).first()

    def list_for_order(self, order_id: UUID) -> List[Refund]:
        return self.list({"order_id": order_id})

    def refunded_quantities(
        self, cancellation_id: Optional[UUID] = None, return_id: Optional[UUID] = None
    ) -> Dict[UUID, int]:
        queryset = RefundItem.objects.filter(refund__deleted_at__isnull=True).exclude(
            refund__status=RefundStatus.CANCELLED
        )
        if cancellation_id is not None:
            queryset = queryset.filter(refund__cancellation_id=cancellation_id)
        elif return_id is not None:
            queryset = queryset.filter(refund__return_request_id=return_id)
        else:
            return {}
        totals: Dict[UUID, int] = defaultdict(int)
        for row in queryset.values("order_item_id").annotate(total=Sum("quantity")):
            totals[row["order_item_id"]] += row["total"] or 0
        return dict(totals)

    def list_stuck(self, started_before: datetime) -> List[Refund]:
        return list(
            Refund.objects.alive().filter(
                status=RefundStatus.PROCESSING,
                processing_started_at__lt=started_before,
            )
        )
