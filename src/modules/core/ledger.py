"""Audit ledger of status changes.

Every workflow appends exactly one entry per transition, inside the same
transaction as the status write, so a rolled-back transition leaves no
trace.  Entries are never updated or deleted.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

import structlog

from modules.core.models import StatusLedgerEntry

logger = structlog.get_logger(__name__)


class StatusLedger:
    """Append/read access to ``StatusLedgerEntry`` rows."""

    def record(
        self,
        lifecycle: str,
        aggregate_id: UUID,
        order_id: UUID,
        new_status: str,
        old_status: Optional[str] = None,
        actor: str = "",
        remarks: str = "",
    ) -> StatusLedgerEntry:
        entry = StatusLedgerEntry.objects.create(
            lifecycle=lifecycle,
            aggregate_id=aggregate_id,
            order_id=order_id,
            old_status=old_status or "",
            new_status=new_status,
            actor=actor or "",
            remarks=remarks or "",
        )
        logger.info(
            "ledger.recorded",
            lifecycle=str(lifecycle),
            aggregate_id=str(aggregate_id),
            old_status=old_status,
            new_status=new_status,
        )
        return entry

    def history(self, lifecycle: str, aggregate_id: UUID) -> List[StatusLedgerEntry]:
        """Entries for one aggregate, oldest first."""
        return list(
            StatusLedgerEntry.objects.filter(
                lifecycle=lifecycle, aggregate_id=aggregate_id
            ).order_by("created_at", "id")
        )

    def for_order(self, order_id: UUID) -> List[StatusLedgerEntry]:
        """Every entry touching an order or one of its sub-workflows."""
        return list(
            StatusLedgerEntry.objects.filter(order_id=order_id).order_by("created_at", "id")
        )
