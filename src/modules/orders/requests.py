"""Shared workflow for item-level requests against an order.

Cancellations and returns follow the same shape: a customer asks for some
units of some order items, the request sits in PENDING while it can still
be edited or withdrawn, and an operator approves or rejects it.  Approval
authorizes a refund and, when no purchased unit is left, closes the order.

``ItemRequestService`` holds that shape; subclasses name their lifecycle,
their events and the order states they accept.

Business rules enforced:
- The reason must be an active master data reason of the right type.
- Every line belongs to the order; no order item sits in two live PENDING
  requests (cancellation or return) at once.
- ``quantity <= purchased - approved cancelled - approved returned``.
- Only PENDING requests are edited, withdrawn, approved or rejected.
- Request, update and approval lock the order row and bump its version, so
  writers checking the same units run one after the other.
- Approval is compare-and-set guarded and creates the refund in the same
  transaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Optional
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from modules.core.exceptions import AmountMismatch, InvalidState, NotFound, ValidationFailure
from modules.core.ledger import StatusLedger
from modules.core.transitions import ensure_allowed
from modules.refunds.calculator import Allocated, RefundBreakdown, RefundCalculator, quantize
from modules.refunds.dtos import CreateRefundDTO, RefundItemDTO

if TYPE_CHECKING:
    from modules.masterdata.repositories.interfaces import IMasterDataRepository
    from modules.orders.dtos import ItemRequestDTO, UpdateItemRequestDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IItemRequestRepository
    from modules.orders.services import OrderService
    from modules.refunds.services import RefundService

logger = structlog.get_logger(__name__)


class ItemRequestService(ABC):
    """Application service base for cancellations and returns.

    Receives repositories and collaborating services via constructor
    injection.  ``counterpart_repository`` is the repository of the other
    request kind; both kinds consume the same purchased units.
    """

    lifecycle: ClassVar[str]
    log_prefix: ClassVar[str]
    reason_type: ClassVar[str]
    pending_status: ClassVar[str]
    approved_status: ClassVar[str]
    rejected_status: ClassVar[str]
    closing_order_status: ClassVar[str]
    refund_source_field: ClassVar[str]
    not_found_error: ClassVar[type[NotFound]]
    requested_event: ClassVar[type]
    approved_event: ClassVar[type]
    rejected_event: ClassVar[type]
    withdrawn_event: ClassVar[type]

    def __init__(
        self,
        request_repository: IItemRequestRepository,
        counterpart_repository: IItemRequestRepository,
        order_service: OrderService,
        refund_service: RefundService,
        master_data_repository: IMasterDataRepository,
        ledger: Optional[StatusLedger] = None,
        calculator: Optional[RefundCalculator] = None,
    ) -> None:
        self._requests = request_repository
        self._counterparts = counterpart_repository
        self._orders = order_service
        self._refunds = refund_service
        self._master_data = master_data_repository
        self._ledger = ledger or StatusLedger()
        self._calculator = calculator or RefundCalculator()

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def check_order_eligible(self, order: Order) -> None:
        """Raise ``InvalidState`` when *order* cannot take a new request."""

    def check_request_window(self, order: Order) -> None:
        """Raise when a new request for *order* comes too late.  No limit by default."""

    def line_extras(self, line: Any) -> Dict[str, Any]:
        """Extra per-line columns persisted alongside quantity and amount."""
        return {}

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def request(self, dto: ItemRequestDTO) -> Any:
        """Open a PENDING request for some units of an order.

        Raises:
            OrderNotFound: the order does not exist.
            InvalidState: the order's status does not accept this request.
            ValidationFailure: unknown reason, foreign item, conflicting
                active request or quantity above what remains.
        """
        log = logger.bind(order_id=str(dto.order_id))
        order = self._orders.lock_order(dto.order_id)
        self.check_order_eligible(order)
        self.check_request_window(order)
        self._check_reason(dto.reason, log)

        remaining = self._check_lines(order, dto.items, log)
        breakdown, empties_order = self._price(order, dto.items, remaining)
        self._orders.claim(order)

        request = self._requests.create(
            {
                "order_id": order.id,
                "reason": dto.reason,
                "is_partial": not empties_order,
                "requested_by": dto.requested_by,
                "remarks": dto.remarks,
                "total_refundable_amount": breakdown.total_amount,
                "items": self._line_rows(dto.items, breakdown),
            }
        )
        self._ledger.record(
            self.lifecycle,
            request.id,
            order.id,
            self.pending_status,
            actor=dto.requested_by,
            remarks=dto.remarks,
        )
        request.add_domain_event(
            self.requested_event(
                aggregate_id=request.id,
                order_id=order.id,
                requested_by=dto.requested_by,
            )
        )
        self._requests.flush_events(request)

        log.info(
            f"{self.log_prefix}.requested",
            request_id=str(request.id),
            item_count=len(dto.items),
            refundable_amount=str(breakdown.total_amount),
        )
        return request

    @transaction.atomic
    def update(self, request_id: UUID, dto: UpdateItemRequestDTO) -> Any:
        """Replace reason, remarks and the full line set of a PENDING request.

        Raises:
            InvalidState: the request is no longer PENDING.
            ValidationFailure: same rules as ``request``.
            ConcurrencyConflict: the request changed since it was read.
        """
        request = self.get(request_id)
        log = logger.bind(request_id=str(request_id), order_id=str(request.order_id))
        self._ensure_pending(request, "updated", log)
        self._check_reason(dto.reason, log)

        order = self._orders.lock_order(request.order_id)
        remaining = self._check_lines(order, dto.items, log, exclude_id=request.id)
        breakdown, empties_order = self._price(order, dto.items, remaining)
        self._orders.claim(order)

        self._requests.replace_items(request, self._line_rows(dto.items, breakdown))
        request.reason = dto.reason
        request.remarks = dto.remarks
        request.is_partial = not empties_order
        request.total_refundable_amount = breakdown.total_amount
        self._requests.save(
            request, ["reason", "remarks", "is_partial", "total_refundable_amount"]
        )

        log.info(f"{self.log_prefix}.updated", item_count=len(dto.items))
        return self._requests.get_by_id(str(request.id)) or request

    @transaction.atomic
    def approve(
        self,
        request_id: UUID,
        approver: str,
        refundable_amount: Optional[Decimal] = None,
        remarks: str = "",
    ) -> Any:
        """Approve a PENDING request and authorize its refund.

        When *refundable_amount* is given it must equal the calculated
        amount.  When no purchased unit remains afterwards the order moves to
        ``closing_order_status``.

        Raises:
            InvalidState: already processed, or the order moved on.
            AmountMismatch: *refundable_amount* disagrees with the items.
            ConcurrencyConflict: another writer approved/rejected first.
        """
        request = self.get(request_id)
        log = logger.bind(request_id=str(request_id), order_id=str(request.order_id))
        self._ensure_pending(request, "approved", log)
        ensure_allowed(self.lifecycle, request.status, self.approved_status)

        order = self._orders.lock_order(request.order_id)
        self.check_order_eligible(order)
        lines = list(request.items.all())
        remaining = self._remaining(order)
        for line in lines:
            if line.quantity > remaining.get(line.order_item_id, 0):
                log.warning(
                    f"{self.log_prefix}.quantity_exceeded",
                    order_item_id=str(line.order_item_id),
                )
                raise ValidationFailure(
                    f"Item {line.order_item_id}: only "
                    f"{remaining.get(line.order_item_id, 0)} unit(s) remain."
                )

        breakdown, empties_order = self._price(order, lines, remaining)
        if refundable_amount is not None and quantize(refundable_amount) != breakdown.total_amount:
            log.warning(
                f"{self.log_prefix}.amount_mismatch",
                submitted=str(refundable_amount),
                calculated=str(breakdown.total_amount),
            )
            raise AmountMismatch(
                f"Refundable amount {refundable_amount} does not match the "
                f"calculated {breakdown.total_amount}."
            )
        self._orders.claim(order)

        now = timezone.now()
        old_status = request.status
        request.status = self.approved_status
        request.approved_by = approver
        request.approved_at = now
        request.processed_at = now
        request.processing_remarks = remarks
        request.total_refundable_amount = breakdown.total_amount
        request.add_domain_event(
            self.approved_event(
                aggregate_id=request.id,
                order_id=order.id,
                old_status=old_status,
                new_status=request.status,
                actor=approver,
                refundable_amount=breakdown.total_amount,
            )
        )
        self._requests.save(
            request,
            [
                "status",
                "approved_by",
                "approved_at",
                "processed_at",
                "processing_remarks",
                "total_refundable_amount",
            ],
        )
        self._ledger.record(
            self.lifecycle,
            request.id,
            order.id,
            request.status,
            old_status=old_status,
            actor=approver,
            remarks=remarks,
        )

        refund = self._refunds.create(
            CreateRefundDTO(
                order_id=order.id,
                **{self.refund_source_field: request.id},
                base_amount=breakdown.base_amount,
                discount_amount=breakdown.discount_amount,
                tax_amount=breakdown.tax_amount,
                shipping_amount=breakdown.shipping_amount,
                payment_method=order.payment_method,
                requested_by=approver,
                items=[
                    RefundItemDTO(
                        order_item_id=line.order_item_id,
                        quantity=line.quantity,
                        amount=line.amount,
                    )
                    for line in breakdown.lines
                ],
            )
        )

        if empties_order and order.status != self.closing_order_status:
            self._orders.change_status(
                order.id,
                self.closing_order_status,
                actor=approver,
                remarks=f"All items closed by {self.log_prefix} {request.id}.",
            )

        log.info(
            f"{self.log_prefix}.approved",
            refund_id=str(refund.id),
            refundable_amount=str(breakdown.total_amount),
            order_closed=empties_order,
        )
        return request

    @transaction.atomic
    def reject(self, request_id: UUID, rejecter: str, remarks: str = "") -> Any:
        """Reject a PENDING request.  Terminal."""
        request = self.get(request_id)
        log = logger.bind(request_id=str(request_id), order_id=str(request.order_id))
        self._ensure_pending(request, "rejected", log)
        ensure_allowed(self.lifecycle, request.status, self.rejected_status)

        now = timezone.now()
        old_status = request.status
        request.status = self.rejected_status
        request.rejected_by = rejecter
        request.rejected_at = now
        request.processed_at = now
        request.processing_remarks = remarks
        request.add_domain_event(
            self.rejected_event(
                aggregate_id=request.id,
                order_id=request.order_id,
                old_status=old_status,
                new_status=request.status,
                actor=rejecter,
            )
        )
        self._requests.save(
            request,
            ["status", "rejected_by", "rejected_at", "processed_at", "processing_remarks"],
        )
        self._ledger.record(
            self.lifecycle,
            request.id,
            request.order_id,
            request.status,
            old_status=old_status,
            actor=rejecter,
            remarks=remarks,
        )
        log.info(f"{self.log_prefix}.rejected")
        return request

    @transaction.atomic
    def delete(self, request_id: UUID) -> None:
        """Withdraw (soft-delete) a PENDING request."""
        request = self.get(request_id)
        log = logger.bind(request_id=str(request_id), order_id=str(request.order_id))
        self._ensure_pending(request, "deleted", log)

        request.deleted_at = timezone.now()
        request.add_domain_event(
            self.withdrawn_event(aggregate_id=request.id, order_id=request.order_id)
        )
        self._requests.save(request, ["deleted_at"])
        log.info(f"{self.log_prefix}.withdrawn")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, request_id: UUID) -> Any:
        request = self._requests.get_by_id(str(request_id))
        if not request:
            raise self.not_found_error(f"{self.lifecycle.title()} {request_id} not found.")
        return request

    def list_for_order(self, order_id: UUID) -> List[Any]:
        return self._requests.list_for_order(order_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_pending(self, request: Any, action: str, log: Any) -> None:
        if request.status != self.pending_status:
            log.warning(f"{self.log_prefix}.not_pending", status=request.status, action=action)
            raise InvalidState(
                f"{self.lifecycle.title()} {request.id} is {request.status} "
                f"and cannot be {action}."
            )

    def _check_reason(self, code: str, log: Any) -> None:
        if self._master_data.get_reason(code, self.reason_type) is None:
            log.warning(f"{self.log_prefix}.unknown_reason", reason=code)
            raise ValidationFailure(f"Reason '{code}' is not an active {self.reason_type} reason.")

    def _remaining(self, order: Order) -> Dict[UUID, int]:
        """Purchased units per order item not yet cancelled or returned."""
        taken = self._requests.approved_quantities(order.id)
        other = self._counterparts.approved_quantities(order.id)
        return {
            item.id: item.quantity - taken.get(item.id, 0) - other.get(item.id, 0)
            for item in order.items.all()
        }

    def _check_lines(
        self,
        order: Order,
        lines: List[Any],
        log: Any,
        exclude_id: Optional[UUID] = None,
    ) -> Dict[UUID, int]:
        remaining = self._remaining(order)
        active = self._requests.active_order_item_ids(
            order.id, exclude_id=exclude_id
        ) | self._counterparts.active_order_item_ids(order.id)

        for line in lines:
            if line.order_item_id not in remaining:
                log.warning(f"{self.log_prefix}.foreign_item", order_item_id=str(line.order_item_id))
                raise ValidationFailure(
                    f"Item {line.order_item_id} does not belong to order {order.id}."
                )
            if line.order_item_id in active:
                log.warning(f"{self.log_prefix}.item_busy", order_item_id=str(line.order_item_id))
                raise ValidationFailure(
                    f"Item {line.order_item_id} already has an active request."
                )
            if line.quantity > remaining[line.order_item_id]:
                log.warning(
                    f"{self.log_prefix}.quantity_exceeded",
                    order_item_id=str(line.order_item_id),
                    requested=line.quantity,
                    remaining=remaining[line.order_item_id],
                )
                raise ValidationFailure(
                    f"Item {line.order_item_id}: requested {line.quantity}, "
                    f"only {remaining[line.order_item_id]} unit(s) remain."
                )
        return remaining

    def _price(
        self, order: Order, lines: List[Any], remaining: Dict[UUID, int]
    ) -> tuple[RefundBreakdown, bool]:
        """Refund breakdown of *lines* and whether they exhaust the order."""
        requested = {line.order_item_id: line.quantity for line in lines}
        empties_order = all(
            requested.get(item_id, 0) >= left for item_id, left in remaining.items()
        )
        settled = {
            item.id: item.quantity - remaining.get(item.id, item.quantity)
            for item in order.items.all()
        }
        allocated = None
        if empties_order:
            allocated = Allocated.from_refunds(self._refunds.list_for_order(order.id))
        breakdown = self._calculator.calculate(
            order,
            list(requested.items()),
            closes_order=empties_order,
            settled=settled,
            allocated=allocated,
        )
        return breakdown, empties_order

    def _line_rows(self, lines: List[Any], breakdown: RefundBreakdown) -> List[Dict[str, Any]]:
        return [
            {
                "order_item_id": line.order_item_id,
                "quantity": line.quantity,
                "refundable_amount": breakdown.amount_for(line.order_item_id),
                **self.line_extras(line),
            }
            for line in lines
        ]
