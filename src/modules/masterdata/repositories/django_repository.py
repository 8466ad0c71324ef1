"""Django ORM implementation of the master data repository."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from django.core.exceptions import ValidationError

from modules.masterdata.models import Policy, Reason
from modules.masterdata.repositories.interfaces import IMasterDataRepository


class MasterDataDjangoRepository(IMasterDataRepository):
    def get_reason(self, code: str, reason_type: str) -> Optional[Reason]:
        return Reason.objects.filter(
            code=code, reason_type=reason_type, is_active=True
        ).first()

    def list_reasons(self, reason_type: str) -> List[Reason]:
        return list(Reason.objects.filter(reason_type=reason_type, is_active=True))

    def get_policy(self, policy_id: UUID) -> Optional[Policy]:
        try:
            return Policy.objects.filter(id=policy_id).first()
        except (ValueError, ValidationError):
            return None

    def list_policies(self, policy_type: str) -> List[Policy]:
        return list(Policy.objects.filter(policy_type=policy_type, is_active=True))
