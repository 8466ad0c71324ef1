"""Django ORM base for cancellation and return repositories.

Concrete subclasses name the header model, the line model and the FK from
line to header.  Everything else (creation, upsert-by-order-item, quantity
accounting) is shared.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, ClassVar, Dict, List, Optional, Set
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import Sum

from modules.core.repositories.django_repository import VersionedDjangoRepository
from modules.orders.repositories.interfaces import IItemRequestRepository

logger = structlog.get_logger(__name__)


class ItemRequestDjangoRepository(VersionedDjangoRepository, IItemRequestRepository):
    """Shared persistence for item-level request aggregates."""

    item_model: ClassVar[type[models.Model]]
    parent_field: ClassVar[str]
    pending_status: ClassVar[str]
    approved_status: ClassVar[str]

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Any:
        items = data.get("items", [])
        request = self.model(
            order_id=data["order_id"],
            reason=data["reason"],
            is_partial=data.get("is_partial", False),
            requested_by=data.get("requested_by", ""),
            remarks=data.get("remarks", ""),
            total_refundable_amount=data.get("total_refundable_amount"),
        )
        request.save()
        for item_data in items:
            self.item_model.objects.create(**{self.parent_field: request}, **item_data)

        self.flush_events(request)
        logger.info(
            "item_request.persisted",
            model=self.model.__name__,
            request_id=str(request.id),
            item_count=len(items),
        )
        return self.get_by_id(str(request.id)) or request

    def get_by_id(self, id: str) -> Optional[Any]:
        """Live request with its lines, or ``None``."""
        try:
            return (
                self.model.objects.alive()
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Any]:
        queryset = self.model.objects.alive().prefetch_related("items")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_for_order(self, order_id: UUID) -> List[Any]:
        return self.list({"order_id": order_id})

    @transaction.atomic
    def replace_items(self, request: Any, items: List[Dict[str, Any]]) -> None:
        existing = {
            line.order_item_id: line
            for line in self.item_model.objects.filter(**{self.parent_field: request})
        }
        wanted = {item["order_item_id"] for item in items}

        removed = [line.pk for key, line in existing.items() if key not in wanted]
        if removed:
            self.item_model.objects.filter(pk__in=removed).delete()

        for item_data in items:
            line = existing.get(item_data["order_item_id"])
            if line is None:
                self.item_model.objects.create(
                    **{self.parent_field: request}, **item_data
                )
                continue
            changed = [
                name
                for name, value in item_data.items()
                if name != "order_item_id" and getattr(line, name) != value
            ]
            for name in changed:
                setattr(line, name, item_data[name])
            if changed:
                line.save(update_fields=changed)

        logger.info(
            "item_request.items_replaced",
            model=self.model.__name__,
            request_id=str(request.id),
            removed=len(removed),
            item_count=len(items),
        )

    def approved_quantities(self, order_id: UUID) -> Dict[UUID, int]:
        rows = (
            self.item_model.objects.filter(
                **{
                    f"{self.parent_field}__order_id": order_id,
                    f"{self.parent_field}__status": self.approved_status,
                    f"{self.parent_field}__deleted_at__isnull": True,
                }
            )
            .values("order_item_id")
            .annotate(total=Sum("quantity"))
        )
        totals: Dict[UUID, int] = defaultdict(int)
        for row in rows:
            totals[row["order_item_id"]] += row["total"] or 0
        return dict(totals)

    def active_order_item_ids(
        self, order_id: UUID, exclude_id: Optional[UUID] = None
    ) -> Set[UUID]:
        queryset = self.item_model.objects.filter(
            **{
                f"{self.parent_field}__order_id": order_id,
                f"{self.parent_field}__status": self.pending_status,
                f"{self.parent_field}__deleted_at__isnull": True,
            }
        )
        if exclude_id is not None:
            queryset = queryset.exclude(**{f"{self.parent_field}_id": exclude_id})
        return set(queryset.values_list("order_item_id", flat=True))
