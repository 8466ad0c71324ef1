"""Django ORM implementation of the Return repository."""

from __future__ import annotations

from modules.orders.repositories.item_request_repository import ItemRequestDjangoRepository
from modules.returns.constants import ReturnStatus
from modules.returns.models import Return, ReturnItem


class ReturnDjangoRepository(ItemRequestDjangoRepository):
    model = Return
    item_model = ReturnItem
    parent_field = "return_request"
    topic = "returns"
    pending_status = ReturnStatus.PENDING
    approved_status = ReturnStatus.APPROVED
