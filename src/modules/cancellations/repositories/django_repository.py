"""Django ORM implementation of the Cancellation repository."""

from __future__ import annotations

from modules.cancellations.constants import CancellationStatus
from modules.cancellations.models import Cancellation, CancellationItem
from modules.orders.repositories.item_request_repository import ItemRequestDjangoRepository


class CancellationDjangoRepository(ItemRequestDjangoRepository):
    model = Cancellation
    item_model = CancellationItem
    parent_field = "cancellation"
    topic = "cancellations"
    pending_status = CancellationStatus.PENDING
    approved_status = CancellationStatus.APPROVED
