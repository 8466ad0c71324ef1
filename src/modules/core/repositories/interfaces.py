"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class that every
aggregate repository interface extends.  Service-layer code depends on
this abstraction, never on Django ORM directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Type parameter ``T`` is the aggregate root managed by the repository
    (e.g. ``Order``, ``Refund``).
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an aggregate (with its children) by primary key."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[T]:
        """List aggregates with optional filters."""

    @abstractmethod
    def save(self, entity: T, fields: List[str]) -> T:
        """Persist *fields* of an existing aggregate.

        Implementations compare-and-set the concurrency token and raise
        ``ConcurrencyConflict`` when it is stale.
        """

    @abstractmethod
    def flush_events(self, entity: T) -> int:
        """Move the aggregate's buffered domain events into the outbox."""
