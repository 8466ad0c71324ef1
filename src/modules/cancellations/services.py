"""Cancellation service layer (Use Cases).

A cancellation may be requested while the order can still move to
CANCELLED (anything before DELIVERED) and, when the order carries a
cancellation policy with a window, only within ``window_days`` of the
order being placed.  Approving the last open units cancels the order.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import structlog
from django.utils import timezone

from modules.cancellations.constants import CancellationStatus
from modules.cancellations.events import (
    CancellationApproved,
    CancellationRejected,
    CancellationRequested,
    CancellationWithdrawn,
)
from modules.cancellations.exceptions import CancellationNotFound, CancellationWindowExpired
from modules.core.exceptions import InvalidState
from modules.core.transitions import Lifecycle
from modules.masterdata.constants import ReasonType
from modules.orders.constants import OrderStatus
from modules.orders.requests import ItemRequestService

if TYPE_CHECKING:
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)


class CancellationService(ItemRequestService):
    """Application service for cancellation requests."""

    lifecycle = Lifecycle.CANCELLATION
    log_prefix = "cancellation"
    reason_type = ReasonType.CANCELLATION
    pending_status = CancellationStatus.PENDING
    approved_status = CancellationStatus.APPROVED
    rejected_status = CancellationStatus.REJECTED
    closing_order_status = OrderStatus.CANCELLED
    refund_source_field = "cancellation_id"
    not_found_error = CancellationNotFound
    requested_event = CancellationRequested
    approved_event = CancellationApproved
    rejected_event = CancellationRejected
    withdrawn_event = CancellationWithdrawn

    def check_order_eligible(self, order: Order) -> None:
        if not order.can_transition_to(OrderStatus.CANCELLED):
            logger.warning(
                "cancellation.order_not_cancellable",
                order_id=str(order.id),
                order_status=order.status,
            )
            raise InvalidState(
                f"Order {order.id} is {order.status} and can no longer be cancelled."
            )

    def check_request_window(self, order: Order) -> None:
        if not order.cancellation_policy_id:
            return
        policy = self._master_data.get_policy(order.cancellation_policy_id)
        if policy is None or policy.window_days is None:
            return
        deadline = order.created_at + timedelta(days=policy.window_days)
        if timezone.now() > deadline:
            logger.warning(
                "cancellation.window_expired",
                order_id=str(order.id),
                placed_at=order.created_at.isoformat(),
                window_days=policy.window_days,
            )
            raise CancellationWindowExpired(
                f"Cancellation window of {policy.window_days} day(s) for order {order.id} "
                f"closed on {deadline:%Y-%m-%d}."
            )
