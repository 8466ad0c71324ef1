"""Django ORM helpers shared by the aggregate repositories.

``VersionedDjangoRepository`` implements the optimistic concurrency
contract: a write is an ``UPDATE ... WHERE id = ? AND version = ?`` that
also bumps ``version``.  Zero rows updated means another writer got there
first and the caller must re-read.

Domain events buffered on the aggregate are written to the outbox in the
same transaction as the write that produced them.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar, Dict, Iterable, List
from uuid import UUID

import structlog
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

from modules.core.exceptions import ConcurrencyConflict
from modules.core.models import OutboxEvent

logger = structlog.get_logger(__name__)


class VersionedDjangoRepository:
    """Base for repositories of ``VersionedModel`` aggregates."""

    model: ClassVar[type[models.Model]]
    topic: ClassVar[str]

    @transaction.atomic
    def save(self, entity: Any, fields: List[str]) -> Any:
        """Compare-and-set *fields* of *entity* against its loaded version."""
        self._compare_and_set(entity, fields)
        self.flush_events(entity)
        return entity

    def _compare_and_set(self, entity: Any, fields: Iterable[str]) -> None:
        now = timezone.now()
        values = {name: getattr(entity, name) for name in fields}
        updated = self.model.objects.filter(
            pk=entity.pk, version=entity.version
        ).update(version=F("version") + 1, updated_at=now, **values)
        if not updated:
            logger.warning(
                "repository.concurrency_conflict",
                model=self.model.__name__,
                entity_id=str(entity.pk),
                expected_version=entity.version,
            )
            raise ConcurrencyConflict(
                f"{self.model.__name__} {entity.pk} was modified concurrently "
                f"(expected version {entity.version})."
            )
        entity.version += 1
        entity.updated_at = now

    def flush_events(self, entity: Any) -> int:
        """Move buffered domain events into the outbox."""
        events = entity.domain_events if hasattr(entity, "domain_events") else []
        for event in events:
            OutboxEvent.objects.create(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=serialize_event_payload(event),
                topic=self.topic,
            )
        if hasattr(entity, "clear_domain_events"):
            entity.clear_domain_events()
        return len(events)


def serialize_event_payload(event: Any) -> Dict[str, Any]:
    data = asdict(event)
    normalized = _normalize_for_json(data)
    return json.loads(json.dumps(normalized))


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, list):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value
