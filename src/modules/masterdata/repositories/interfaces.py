"""Master data lookup contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

if TYPE_CHECKING:
    from modules.masterdata.models import Policy, Reason


class IMasterDataRepository(ABC):
    """Read-only access to reasons and policies."""

    @abstractmethod
    def get_reason(self, code: str, reason_type: str) -> Optional[Reason]:
        """Return the active reason with *code* for *reason_type*, if any."""

    @abstractmethod
    def list_reasons(self, reason_type: str) -> List[Reason]:
        """Active reasons of one type."""

    @abstractmethod
    def get_policy(self, policy_id: UUID) -> Optional[Policy]:
        """Retrieve a policy by id (active or not)."""

    @abstractmethod
    def list_policies(self, policy_type: str) -> List[Policy]:
        """Active policies of one type."""
