"""Return repositories package."""

from modules.returns.repositories.django_repository import ReturnDjangoRepository

__all__ = ["ReturnDjangoRepository"]
