"""Cancellation repositories package."""

from modules.cancellations.repositories.django_repository import CancellationDjangoRepository

__all__ = ["CancellationDjangoRepository"]
