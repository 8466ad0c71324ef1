"""Order service layer (Use Cases).

Orchestrates order creation and status management.  All write operations
are atomic; the service defines the unit-of-work boundary.

Business rules enforced:
- Subtotal is the sum of line totals; total follows from the order-level
  discount, tax and shipping and is never negative.
- Status transitions validated against the order transition table.
- Re-applying the current status is a successful no-op.
- Every status change writes history and a ledger entry in the same
  transaction as the compare-and-set status write.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.db import transaction

from modules.core.exceptions import ConcurrencyConflict, InvalidTransition
from modules.core.ledger import StatusLedger
from modules.core.transitions import Lifecycle, ensure_allowed
from modules.orders.constants import OrderStatus
from modules.orders.details import OrderDetailsDTO
from modules.orders.events import OrderCreated, OrderStatusChanged
from modules.orders.exceptions import InvalidOrderAmounts, OrderNotFound
from modules.orders.models import Order

if TYPE_CHECKING:
    from datetime import datetime

    from modules.orders.dtos import CreateOrderDTO
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives the repository and the ledger via constructor injection.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        ledger: Optional[StatusLedger] = None,
    ) -> None:
        self._order_repo = order_repository
        self._ledger = ledger or StatusLedger()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Create a PENDING order with its items.

        Raises:
            InvalidOrderAmounts: the order-level discount makes the total
                negative.
        """
        log = logger.bind(user_id=str(dto.user_id))
        log.info("order.creation_started", item_count=len(dto.items))

        subtotal = sum(
            (item.unit_price * item.quantity - item.discount_amount for item in dto.items),
            Decimal("0.00"),
        )
        total = Order.compute_total(
            subtotal, dto.discount_amount, dto.tax_amount, dto.shipping_charges
        )
        if total < 0:
            log.warning("order.negative_total", subtotal=str(subtotal), total=str(total))
            raise InvalidOrderAmounts(
                f"Order total would be {total}: discount {dto.discount_amount} "
                f"exceeds the order value."
            )

        order = self._order_repo.create(
            {
                "user_id": dto.user_id,
                "payment_method": dto.payment_method,
                "shipping_address": dto.shipping_address,
                "billing_address": dto.billing_address,
                "discount_amount": dto.discount_amount,
                "tax_amount": dto.tax_amount,
                "shipping_charges": dto.shipping_charges,
                "cancellation_policy_id": dto.cancellation_policy_id,
                "return_policy_id": dto.return_policy_id,
                "notes": dto.notes or "",
                "subtotal_amount": subtotal,
                "total_amount": total,
                "items": [
                    {
                        "product_id": item.product_id,
                        "product_name": item.product_name,
                        "unit_price": item.unit_price,
                        "quantity": item.quantity,
                        "discount_amount": item.discount_amount,
                    }
                    for item in dto.items
                ],
            }
        )

        self._order_repo.add_history(
            order_id=order.id,
            new_status=OrderStatus.PENDING,
            changed_by=dto.created_by,
            remarks="Order created",
        )
        self._ledger.record(
            Lifecycle.ORDER,
            order.id,
            order.id,
            OrderStatus.PENDING,
            actor=dto.created_by,
            remarks="Order created",
        )
        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                user_id=str(dto.user_id),
                total_amount=total,
            )
        )
        self._order_repo.flush_events(order)

        log.info("order.created", order_id=str(order.id), total_amount=str(total))
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def change_status(
        self,
        order_id: UUID,
        new_status: str,
        actor: str = "",
        remarks: str = "",
    ) -> Order:
        """Transition an order to a new status.

        Requesting the current status returns the order untouched.

        Raises:
            OrderNotFound: order does not exist.
            InvalidTransition: transition is not allowed.
            ConcurrencyConflict: the order changed since it was read.
        """
        order = self.get_order(str(order_id))
        log = logger.bind(
            order_id=str(order_id),
            current_status=order.status,
            new_status=new_status,
        )

        if order.status == new_status:
            log.info("order.status_unchanged")
            return order

        try:
            ensure_allowed(Lifecycle.ORDER, order.status, new_status)
        except InvalidTransition:
            log.warning("order.invalid_transition")
            raise

        old_status = order.status
        order.status = new_status
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                order_id=order.id,
                old_status=old_status,
                new_status=new_status,
                actor=actor,
            )
        )
        self._order_repo.save(order, ["status"])

        self._order_repo.add_history(
            order_id=order.id,
            new_status=new_status,
            old_status=old_status,
            changed_by=actor,
            remarks=remarks,
        )
        self._ledger.record(
            Lifecycle.ORDER,
            order.id,
            order.id,
            new_status,
            old_status=old_status,
            actor=actor,
            remarks=remarks,
        )

        log.info("order.status_updated")
        return self._order_repo.get_by_id(str(order_id)) or order

    def claim(self, order: Order) -> Order:
        """Bump the order's version so concurrent item-level writers conflict."""
        try:
            return self._order_repo.claim(order)
        except ConcurrencyConflict:
            logger.warning("order.claim_conflict", order_id=str(order.id))
            raise

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def lock_order(self, order_id: UUID) -> Order:
        """Load *order_id* and lock its row for the rest of the transaction.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def get_with_details(self, order_id: UUID) -> OrderDetailsDTO:
        """Read-only projection of an order and all of its sub-workflows."""
        order = self._order_repo.get_with_details(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return OrderDetailsDTO.from_entity(order)

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Return a list of orders, optionally filtered."""
        return self._order_repo.list(filters)

    def delivered_at(self, order_id: UUID) -> Optional[datetime]:
        return self._order_repo.delivered_at(order_id)
