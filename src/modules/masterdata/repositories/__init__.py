"""Master data repositories package."""

from modules.masterdata.repositories.django_repository import MasterDataDjangoRepository
from modules.masterdata.repositories.interfaces import IMasterDataRepository

__all__ = ["IMasterDataRepository", "MasterDataDjangoRepository"]
