"""Return service layer (Use Cases).

Returns are accepted only for DELIVERED orders and, when the order carries
a return policy with a window, only within ``window_days`` of delivery.
Approving the last open units moves the order to RETURNED.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict

import structlog
from django.utils import timezone

from modules.core.exceptions import InvalidState
from modules.core.transitions import Lifecycle
from modules.masterdata.constants import ReasonType
from modules.orders.constants import OrderStatus
from modules.orders.requests import ItemRequestService
from modules.returns.constants import ReturnStatus
from modules.returns.events import ReturnApproved, ReturnRejected, ReturnRequested, ReturnWithdrawn
from modules.returns.exceptions import ReturnNotFound, ReturnWindowExpired

if TYPE_CHECKING:
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)


class ReturnService(ItemRequestService):
    """Application service for return requests."""

    lifecycle = Lifecycle.RETURN
    log_prefix = "return"
    reason_type = ReasonType.RETURN
    pending_status = ReturnStatus.PENDING
    approved_status = ReturnStatus.APPROVED
    rejected_status = ReturnStatus.REJECTED
    closing_order_status = OrderStatus.RETURNED
    refund_source_field = "return_id"
    not_found_error = ReturnNotFound
    requested_event = ReturnRequested
    approved_event = ReturnApproved
    rejected_event = ReturnRejected
    withdrawn_event = ReturnWithdrawn

    def check_order_eligible(self, order: Order) -> None:
        if order.status != OrderStatus.DELIVERED:
            logger.warning(
                "return.order_not_delivered",
                order_id=str(order.id),
                order_status=order.status,
            )
            raise InvalidState(
                f"Order {order.id} is {order.status}; only delivered orders can be returned."
            )

    def check_request_window(self, order: Order) -> None:
        if not order.return_policy_id:
            return
        policy = self._master_data.get_policy(order.return_policy_id)
        if policy is None or policy.window_days is None:
            return
        delivered_at = self._orders.delivered_at(order.id)
        if delivered_at is None:
            return
        deadline = delivered_at + timedelta(days=policy.window_days)
        if timezone.now() > deadline:
            logger.warning(
                "return.window_expired",
                order_id=str(order.id),
                delivered_at=delivered_at.isoformat(),
                window_days=policy.window_days,
            )
            raise ReturnWindowExpired(
                f"Return window of {policy.window_days} day(s) for order {order.id} "
                f"closed on {deadline:%Y-%m-%d}."
            )

    def line_extras(self, line: Any) -> Dict[str, Any]:
        return {"remarks": getattr(line, "remarks", "")}
