"""Service construction with the Django repositories.

Callers outside the modules (Celery tasks, management commands, an API
layer) obtain fully wired services here.
"""

from __future__ import annotations

from typing import Optional

from modules.cancellations.repositories import CancellationDjangoRepository
from modules.cancellations.services import CancellationService
from modules.core.ledger import StatusLedger
from modules.masterdata.repositories import MasterDataDjangoRepository
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.refunds.gateway import PaymentGateway
from modules.refunds.repositories import RefundDjangoRepository
from modules.refunds.services import RefundService
from modules.returns.repositories import ReturnDjangoRepository
from modules.returns.services import ReturnService
from modules.shipments.repositories import ShipmentDjangoRepository
from modules.shipments.services import ShipmentService


def build_order_service() -> OrderService:
    return OrderService(OrderDjangoRepository(), ledger=StatusLedger())


def build_refund_service(gateway: Optional[PaymentGateway] = None) -> RefundService:
    return RefundService(
        RefundDjangoRepository(),
        CancellationDjangoRepository(),
        ReturnDjangoRepository(),
        gateway=gateway,
        ledger=StatusLedger(),
    )


def build_cancellation_service(
    gateway: Optional[PaymentGateway] = None,
) -> CancellationService:
    return CancellationService(
        CancellationDjangoRepository(),
        ReturnDjangoRepository(),
        order_service=build_order_service(),
        refund_service=build_refund_service(gateway),
        master_data_repository=MasterDataDjangoRepository(),
        ledger=StatusLedger(),
    )


def build_return_service(gateway: Optional[PaymentGateway] = None) -> ReturnService:
    return ReturnService(
        ReturnDjangoRepository(),
        CancellationDjangoRepository(),
        order_service=build_order_service(),
        refund_service=build_refund_service(gateway),
        master_data_repository=MasterDataDjangoRepository(),
        ledger=StatusLedger(),
    )


def build_shipment_service() -> ShipmentService:
    return ShipmentService(
        ShipmentDjangoRepository(),
        OrderDjangoRepository(),
        CancellationDjangoRepository(),
        ledger=StatusLedger(),
    )
