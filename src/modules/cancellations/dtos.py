"""Cancellation DTOs (Pydantic v2, immutable).

The shapes are shared with returns; see ``modules.orders.dtos``.
"""

from __future__ import annotations

from modules.orders.dtos import (
    ItemRequestDTO,
    ItemRequestLineDTO,
    ItemRequestOutputDTO,
    UpdateItemRequestDTO,
)


class CancellationItemDTO(ItemRequestLineDTO):
    """Units of one order item to cancel."""


class RequestCancellationDTO(ItemRequestDTO):
    items: list[CancellationItemDTO]


class UpdateCancellationDTO(UpdateItemRequestDTO):
    items: list[CancellationItemDTO]


class CancellationOutputDTO(ItemRequestOutputDTO):
    """Cancellation with its lines."""
