"""Refund repositories package."""

from modules.refunds.repositories.django_repository import RefundDjangoRepository
from modules.refunds.repositories.interfaces import IRefundRepository

__all__ = ["IRefundRepository", "RefundDjangoRepository"]
