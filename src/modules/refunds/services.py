"""Refund service layer (Use Cases).

Refunds are created by cancellation/return approval, then moved through
PENDING -> PROCESSING -> COMPLETED | FAILED (FAILED may still complete on a
successful retry).

Business rules enforced:
- A refund names exactly one approved cancellation or return, and never
  refunds more units of an item than that request covers.
- ``sum(item amounts) == base - discount + tax + shipping``.
- Status moves are checked against the refund transition table before
  anything is written; a rejected move changes nothing.
- No database transaction is open while the payment gateway is called:
  PROCESSING is committed first, the outcome is written afterwards.

Gateway outcome handling when entering PROCESSING:
- accepted   -> transaction reference stored, status stays PROCESSING
- declined   -> FAILED with the gateway message
- timeout    -> FAILED, ``GatewayTimeout`` re-raised
- unreachable/5xx -> stays PROCESSING, ``GatewayUnavailable`` re-raised;
  ``fail_stuck_refunds`` resolves it once the deadline passes
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, List, Optional
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from modules.cancellations.constants import CancellationStatus
from modules.core.exceptions import (
    AmountMismatch,
    ConcurrencyConflict,
    InvalidState,
    InvalidTransition,
    NotFound,
    ValidationFailure,
)
from modules.core.ledger import StatusLedger
from modules.core.transitions import Lifecycle, ensure_allowed
from modules.refunds.constants import SYSTEM_ACTOR, RefundStatus
from modules.refunds.events import RefundCreated, RefundGatewayFailed, RefundStatusChanged
from modules.refunds.exceptions import GatewayTimeout, GatewayUnavailable, RefundNotFound
from modules.refunds.gateway import HttpPaymentGateway, RefundRequest
from modules.returns.constants import ReturnStatus

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import IItemRequestRepository
    from modules.refunds.dtos import CreateRefundDTO, UpdateRefundStatusDTO
    from modules.refunds.gateway import PaymentGateway
    from modules.refunds.models import Refund
    from modules.refunds.repositories.interfaces import IRefundRepository

logger = structlog.get_logger(__name__)

STUCK_REFUND_REASON = "Gateway outcome unknown after the processing deadline."


class RefundService:
    """Application service for Refund use-cases.

    Receives repositories and the payment gateway via constructor
    injection.  The cancellation and return repositories are read to
    check what an authorizing request covers.
    """

    def __init__(
        self,
        refund_repository: IRefundRepository,
        cancellation_repository: IItemRequestRepository,
        return_repository: IItemRequestRepository,
        gateway: Optional[PaymentGateway] = None,
        ledger: Optional[StatusLedger] = None,
    ) -> None:
        self._refunds = refund_repository
        self._cancellations = cancellation_repository
        self._returns = return_repository
        self._gateway = gateway or HttpPaymentGateway.from_settings()
        self._ledger = ledger or StatusLedger()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, dto: CreateRefundDTO) -> Refund:
        """Create a PENDING refund for an approved cancellation or return.

        Raises:
            NotFound: the authorizing request does not exist.
            InvalidState: the authorizing request is not approved.
            ValidationFailure: an item is not covered by the request.
            AmountMismatch: item amounts do not add up to the total.
        """
        log = logger.bind(order_id=str(dto.order_id))
        source = self._load_source(dto, log)

        authorized = {line.order_item_id: line.quantity for line in source.items.all()}
        already = self._refunds.refunded_quantities(
            cancellation_id=dto.cancellation_id, return_id=dto.return_id
        )
        for item in dto.items:
            covered = authorized.get(item.order_item_id, 0) - already.get(item.order_item_id, 0)
            if item.quantity > covered:
                log.warning(
                    "refund.quantity_not_covered",
                    order_item_id=str(item.order_item_id),
                    requested=item.quantity,
                    covered=covered,
                )
                raise ValidationFailure(
                    f"Item {item.order_item_id}: {item.quantity} unit(s) requested, "
                    f"{covered} covered by the authorizing request."
                )

        total = dto.total_amount
        if total < 0:
            raise ValidationFailure("Refund total cannot be negative.")
        items_total = sum((item.amount for item in dto.items), Decimal("0.00"))
        if items_total != total:
            log.warning(
                "refund.amount_mismatch",
                items_total=str(items_total),
                total=str(total),
            )
            raise AmountMismatch(
                f"Refund items add up to {items_total}, expected {total}."
            )

        refund = self._refunds.create(
            {
                "order_id": dto.order_id,
                "cancellation_id": dto.cancellation_id,
                "return_request_id": dto.return_id,
                "base_amount": dto.base_amount,
                "discount_amount": dto.discount_amount,
                "tax_amount": dto.tax_amount,
                "shipping_amount": dto.shipping_amount,
                "payment_method": dto.payment_method,
                "requested_by": dto.requested_by,
                "items": [
                    {
                        "order_item_id": item.order_item_id,
                        "quantity": item.quantity,
                        "amount": item.amount,
                    }
                    for item in dto.items
                ],
            }
        )
        self._ledger.record(
            Lifecycle.REFUND,
            refund.id,
            refund.order_id,
            refund.status,
            actor=dto.requested_by,
        )
        refund.add_domain_event(
            RefundCreated(
                aggregate_id=refund.id,
                order_id=refund.order_id,
                total_amount=refund.total_amount,
            )
        )
        self._refunds.flush_events(refund)

        log.info("refund.created", refund_id=str(refund.id), total_amount=str(total))
        return refund

    def update_status(self, refund_id: UUID, dto: UpdateRefundStatusDTO) -> Refund:
        """Move a refund to ``dto.status``.

        Entering PROCESSING calls the payment gateway (see module docstring).

        Raises:
            RefundNotFound: the refund does not exist.
            InvalidTransition: the refund table rejects the move.
            ValidationFailure: COMPLETED without any transaction reference.
            ConcurrencyConflict: the refund changed since it was read.
            ExternalDependencyFailure: the gateway timed out or is down.
        """
        refund = self.get(refund_id)
        log = logger.bind(refund_id=str(refund_id), order_id=str(refund.order_id))
        try:
            ensure_allowed(Lifecycle.REFUND, refund.status, dto.status)
        except InvalidTransition:
            log.warning(
                "refund.invalid_transition",
                current_status=refund.status,
                new_status=dto.status,
            )
            raise

        if dto.status == RefundStatus.PROCESSING:
            self._transition(
                refund,
                RefundStatus.PROCESSING,
                dto.actor,
                dto.remarks,
                payment_method=dto.payment_method,
            )
            return self._settle(refund, dto.actor, complete_on_success=False)

        changes: dict[str, Any] = {
            "transaction_reference": dto.transaction_reference,
            "payment_method": dto.payment_method,
        }
        if dto.status == RefundStatus.COMPLETED:
            if not (dto.transaction_reference or refund.transaction_reference):
                log.warning("refund.missing_transaction_reference")
                raise ValidationFailure(
                    f"Refund {refund.id} cannot complete without a transaction reference."
                )
        if dto.status == RefundStatus.FAILED:
            changes["failure_reason"] = dto.remarks or None

        self._transition(refund, dto.status, dto.actor, dto.remarks, **changes)
        return refund

    def retry(self, refund_id: UUID, actor: str = "") -> Refund:
        """Re-submit a FAILED refund; success completes it.

        A declined retry leaves the refund FAILED and unchanged.
        """
        refund = self.get(refund_id)
        if refund.status != RefundStatus.FAILED:
            raise InvalidState(f"Refund {refund.id} is {refund.status}, only FAILED refunds are retried.")
        ensure_allowed(Lifecycle.REFUND, refund.status, RefundStatus.COMPLETED)
        logger.info("refund.retry_started", refund_id=str(refund.id))
        return self._settle(refund, actor, complete_on_success=True)

    def fail_stuck_refunds(self, older_than: timedelta) -> int:
        """Fail PROCESSING refunds whose gateway outcome never arrived.

        Returns the number of refunds moved to FAILED.  Refunds changed by
        someone else meanwhile are skipped.
        """
        cutoff = timezone.now() - older_than
        failed = 0
        for refund in self._refunds.list_stuck(cutoff):
            try:
                self._fail(refund, STUCK_REFUND_REASON, SYSTEM_ACTOR)
            except ConcurrencyConflict:
                logger.info("refund.reconcile_skipped", refund_id=str(refund.id))
                continue
            failed += 1
        logger.info("refund.reconcile_finished", failed=failed, cutoff=cutoff.isoformat())
        return failed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, refund_id: UUID) -> Refund:
        refund = self._refunds.get_by_id(str(refund_id))
        if not refund:
            raise RefundNotFound(f"Refund {refund_id} not found.")
        return refund

    def get_by_cancellation(self, cancellation_id: UUID) -> Optional[Refund]:
        return self._refunds.get_by_source(cancellation_id=cancellation_id)

    def get_by_return(self, return_id: UUID) -> Optional[Refund]:
        return self._refunds.get_by_source(return_id=return_id)

    def list_for_order(self, order_id: UUID) -> List[Refund]:
        return self._refunds.list_for_order(order_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_source(self, dto: CreateRefundDTO, log: Any) -> Any:
        if dto.cancellation_id is not None:
            source = self._cancellations.get_by_id(str(dto.cancellation_id))
            approved = CancellationStatus.APPROVED
            label = f"Cancellation {dto.cancellation_id}"
        else:
            source = self._returns.get_by_id(str(dto.return_id))
            approved = ReturnStatus.APPROVED
            label = f"Return {dto.return_id}"

        if source is None:
            raise NotFound(f"{label} not found.")
        if source.order_id != dto.order_id:
            raise ValidationFailure(f"{label} does not belong to order {dto.order_id}.")
        if source.status != approved:
            log.warning("refund.source_not_approved", source_status=source.status)
            raise InvalidState(f"{label} is {source.status}; only approved requests are refunded.")
        return source

    def _transition(
        self, refund: Refund, new_status: str, actor: str, remarks: str, **changes: Any
    ) -> None:
        """Write one allowed status move with its ledger entry."""
        now = timezone.now()
        old_status = refund.status
        refund.status = new_status
        fields = ["status"]
        for name, value in changes.items():
            if value is not None:
                setattr(refund, name, value)
                fields.append(name)
        if new_status == RefundStatus.PROCESSING:
            refund.processing_started_at = now
            fields.append("processing_started_at")
        if new_status == RefundStatus.COMPLETED:
            refund.completed_at = now
            fields.append("completed_at")

        refund.add_domain_event(
            RefundStatusChanged(
                aggregate_id=refund.id,
                order_id=refund.order_id,
                old_status=old_status,
                new_status=new_status,
                actor=actor,
                transaction_reference=refund.transaction_reference,
            )
        )
        with transaction.atomic():
            self._refunds.save(refund, fields)
            self._ledger.record(
                Lifecycle.REFUND,
                refund.id,
                refund.order_id,
                new_status,
                old_status=old_status,
                actor=actor,
                remarks=remarks,
            )
        logger.info(
            "refund.status_updated",
            refund_id=str(refund.id),
            old_status=old_status,
            new_status=new_status,
        )

    def _fail(self, refund: Refund, reason: str, actor: str) -> None:
        refund.add_domain_event(
            RefundGatewayFailed(aggregate_id=refund.id, order_id=refund.order_id, reason=reason)
        )
        self._transition(refund, RefundStatus.FAILED, actor, reason, failure_reason=reason)

    def _settle(self, refund: Refund, actor: str, complete_on_success: bool) -> Refund:
        """Call the gateway for *refund* and record the outcome."""
        log = logger.bind(refund_id=str(refund.id), order_id=str(refund.order_id))
        request = RefundRequest(
            refund_id=refund.id,
            order_id=refund.order_id,
            amount=refund.total_amount,
            payment_method=refund.payment_method,
            reason=refund.failure_reason,
        )
        try:
            result = self._gateway.initiate_refund(request)
        except GatewayTimeout:
            log.warning("refund.gateway_timeout", status=refund.status)
            if refund.status == RefundStatus.PROCESSING:
                self._fail(refund, "Payment gateway timed out.", SYSTEM_ACTOR)
            raise
        except GatewayUnavailable:
            log.warning("refund.gateway_unavailable", status=refund.status)
            raise

        if not result.success:
            log.warning("refund.gateway_failed", message=result.message, status=refund.status)
            if refund.status == RefundStatus.PROCESSING:
                self._fail(refund, result.message, actor or SYSTEM_ACTOR)
            return refund

        if complete_on_success:
            self._transition(
                refund,
                RefundStatus.COMPLETED,
                actor or SYSTEM_ACTOR,
                "Gateway accepted the retried refund.",
                transaction_reference=result.transaction_reference,
            )
        else:
            refund.transaction_reference = result.transaction_reference or ""
            with transaction.atomic():
                self._refunds.save(refund, ["transaction_reference"])
        log.info(
            "refund.gateway_accepted",
            transaction_reference=refund.transaction_reference,
            status=refund.status,
        )
        return refund
