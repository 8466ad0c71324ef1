"""Status transition graph for every lifecycle.

A single read-only lookup over the per-lifecycle adjacency tables declared
in each module's ``constants``.  The tables are ``MappingProxyType``
instances of ``frozenset`` built at import and never mutated.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from django.db import models

from modules.cancellations.constants import VALID_TRANSITIONS as CANCELLATION_TRANSITIONS
from modules.core.exceptions import InvalidTransition
from modules.orders.constants import VALID_TRANSITIONS as ORDER_TRANSITIONS
from modules.refunds.constants import VALID_TRANSITIONS as REFUND_TRANSITIONS
from modules.returns.constants import VALID_TRANSITIONS as RETURN_TRANSITIONS
from modules.shipments.constants import VALID_TRANSITIONS as SHIPMENT_TRANSITIONS


class Lifecycle(models.TextChoices):
    ORDER = "ORDER", "Order"
    CANCELLATION = "CANCELLATION", "Cancellation"
    RETURN = "RETURN", "Return"
    REFUND = "REFUND", "Refund"
    SHIPMENT = "SHIPMENT", "Shipment"


_GRAPH: Mapping[str, Mapping[str, frozenset]] = MappingProxyType(
    {
        Lifecycle.ORDER: ORDER_TRANSITIONS,
        Lifecycle.CANCELLATION: CANCELLATION_TRANSITIONS,
        Lifecycle.RETURN: RETURN_TRANSITIONS,
        Lifecycle.REFUND: REFUND_TRANSITIONS,
        Lifecycle.SHIPMENT: SHIPMENT_TRANSITIONS,
    }
)


def states(lifecycle: str) -> frozenset:
    """Every status known to *lifecycle*."""
    return frozenset(_GRAPH[lifecycle])


def allowed_targets(lifecycle: str, from_status: str) -> frozenset:
    """Statuses reachable in one step from *from_status*.

    Unknown statuses have no outgoing edges.
    """
    return _GRAPH[lifecycle].get(from_status, frozenset())


def is_allowed(lifecycle: str, from_status: str, to_status: str) -> bool:
    return to_status in allowed_targets(lifecycle, from_status)


def is_terminal(lifecycle: str, status: str) -> bool:
    return not allowed_targets(lifecycle, status)


def ensure_allowed(lifecycle: str, from_status: str, to_status: str) -> None:
    """Raise ``InvalidTransition`` unless the move is in the graph."""
    if not is_allowed(lifecycle, from_status, to_status):
        raise InvalidTransition(str(lifecycle), str(from_status), str(to_status))
