"""Celery tasks of the refunds module."""

from datetime import timedelta

import structlog
from celery import shared_task
from django.conf import settings

logger = structlog.get_logger(__name__)


@shared_task(name="refunds.reconcile_stuck_refunds")
def reconcile_stuck_refunds(deadline_minutes=None):
    """Fail refunds left in PROCESSING past the deadline."""
    from modules.wiring import build_refund_service

    minutes = deadline_minutes or settings.REFUND_PROCESSING_DEADLINE_MINUTES
    failed = build_refund_service().fail_stuck_refunds(timedelta(minutes=minutes))
    logger.info("refunds.reconcile_task_executed", failed=failed, deadline_minutes=minutes)
    return {"status": "ok", "failed": failed}
