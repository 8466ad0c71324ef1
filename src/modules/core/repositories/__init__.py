"""Shared repository contracts and Django helpers."""

from modules.core.repositories.django_repository import VersionedDjangoRepository
from modules.core.repositories.interfaces import IRepository

__all__ = ["IRepository", "VersionedDjangoRepository"]
