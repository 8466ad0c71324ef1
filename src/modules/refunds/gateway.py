"""Payment gateway client.

``PaymentGateway`` is the capability the refund workflow depends on;
``HttpPaymentGateway`` talks to the payment service over HTTP with httpx.

Every response uses the envelope ``{"success": bool, "message": str,
"data": {...}}``.  Failure classification:

- timeout                      -> ``GatewayTimeout``
- connection error / HTTP 5xx  -> ``GatewayUnavailable``
- HTTP 4xx or ``success=false`` -> an explicit, non-raising failure result
  for refunds; ``PaymentDeclined`` for payments

Connection failures are retried a bounded number of times by the
transport (``httpx.HTTPTransport(retries=...)``); requests that reached the
gateway are never re-sent.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional, Protocol
from uuid import UUID

import httpx
import structlog
from django.conf import settings
from pydantic import BaseModel, ConfigDict, ValidationError

from modules.refunds.exceptions import GatewayTimeout, GatewayUnavailable, PaymentDeclined

logger = structlog.get_logger(__name__)

_CREATE_PAYMENT_ENDPOINT = "/api/payments/create"
_PAYMENT_INFO_ENDPOINT = "/api/payments/info"
_REFUND_ENDPOINT = "/api/payments/refund"


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class GatewayEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool = False
    message: str = ""
    data: Optional[Dict[str, Any]] = None


class PaymentRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    amount: Decimal
    payment_method: str
    currency: str = "USD"


class PaymentResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    payment_id: str
    status: str = ""
    payment_url: Optional[str] = None


class PaymentInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    payment_id: str
    order_id: Optional[UUID] = None
    amount: Optional[Decimal] = None
    status: str = ""
    transaction_reference: Optional[str] = None


class RefundRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    refund_id: UUID
    order_id: UUID
    amount: Decimal
    payment_method: str
    reason: str = ""


class RefundResult(BaseModel):
    """Outcome of a refund call that reached the gateway."""

    model_config = ConfigDict(frozen=True)

    success: bool
    transaction_reference: Optional[str] = None
    message: str = ""


# ---------------------------------------------------------------------------
# Capability
# ---------------------------------------------------------------------------


class PaymentGateway(Protocol):
    def initiate_payment(self, request: PaymentRequest) -> PaymentResult: ...

    def get_payment_info(self, payment_id: str) -> Optional[PaymentInfo]: ...

    def initiate_refund(self, request: RefundRequest) -> RefundResult: ...


class HttpPaymentGateway:
    """httpx implementation of ``PaymentGateway``.

    Pass *transport* to substitute the network (``httpx.MockTransport`` in
    tests); otherwise a retrying ``HTTPTransport`` is used.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 10.0,
        retries: int = 2,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport or httpx.HTTPTransport(retries=retries),
        )

    @classmethod
    def from_settings(cls) -> HttpPaymentGateway:
        return cls(
            base_url=settings.PAYMENT_GATEWAY_URL,
            access_token=settings.PAYMENT_GATEWAY_TOKEN,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
            retries=settings.PAYMENT_GATEWAY_RETRIES,
        )

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def initiate_payment(self, request: PaymentRequest) -> PaymentResult:
        envelope, status_code = self._post(_CREATE_PAYMENT_ENDPOINT, request)
        if status_code >= 400 or not envelope.success or envelope.data is None:
            logger.warning(
                "gateway.payment_declined",
                order_id=str(request.order_id),
                status_code=status_code,
                message=envelope.message,
            )
            raise PaymentDeclined(
                f"Payment for order {request.order_id} was not accepted: "
                f"{envelope.message or status_code}"
            )
        return self._parse(PaymentResult, envelope.data)

    def get_payment_info(self, payment_id: str) -> Optional[PaymentInfo]:
        """Payment details, or ``None`` when the gateway does not know it."""
        envelope, status_code = self._post(
            _PAYMENT_INFO_ENDPOINT, {"payment_id": payment_id}
        )
        if status_code >= 400 or not envelope.success or envelope.data is None:
            return None
        return self._parse(PaymentInfo, envelope.data)

    def initiate_refund(self, request: RefundRequest) -> RefundResult:
        log = logger.bind(refund_id=str(request.refund_id), order_id=str(request.order_id))
        envelope, status_code = self._post(_REFUND_ENDPOINT, request)

        if status_code >= 400 or not envelope.success:
            log.warning(
                "gateway.refund_declined",
                status_code=status_code,
                message=envelope.message,
            )
            return RefundResult(
                success=False,
                message=envelope.message or f"Gateway answered HTTP {status_code}.",
            )

        reference = (envelope.data or {}).get("transaction_reference")
        if not reference:
            log.warning("gateway.refund_without_reference")
            return RefundResult(
                success=False,
                message="Gateway accepted the refund without a transaction reference.",
            )
        log.info("gateway.refund_accepted", transaction_reference=reference)
        return RefundResult(success=True, transaction_reference=str(reference), message=envelope.message)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _post(self, path: str, payload: BaseModel | Dict[str, Any]) -> tuple[GatewayEnvelope, int]:
        body = payload.model_dump(mode="json") if isinstance(payload, BaseModel) else payload
        try:
            response = self._client.post(path, json=body)
        except httpx.TimeoutException as exc:
            logger.warning("gateway.timeout", path=path, error=str(exc))
            raise GatewayTimeout(f"Payment gateway timed out on {path}.") from exc
        except httpx.TransportError as exc:
            logger.warning("gateway.unreachable", path=path, error=str(exc))
            raise GatewayUnavailable(f"Payment gateway unreachable on {path}.") from exc

        if response.status_code >= 500:
            logger.warning("gateway.server_error", path=path, status_code=response.status_code)
            raise GatewayUnavailable(
                f"Payment gateway answered HTTP {response.status_code} on {path}."
            )

        try:
            envelope = GatewayEnvelope.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            if response.is_success:
                logger.warning("gateway.malformed_response", path=path)
                raise GatewayUnavailable(
                    f"Payment gateway returned a malformed body on {path}."
                ) from exc
            envelope = GatewayEnvelope(success=False, message=response.reason_phrase)
        return envelope, response.status_code

    @staticmethod
    def _parse(model: type[BaseModel], data: Dict[str, Any]) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise GatewayUnavailable(
                f"Payment gateway returned an unexpected {model.__name__} payload."
            ) from exc
