"""Return DTOs (Pydantic v2, immutable).

Same shapes as cancellations, plus per-line inspection remarks.
"""

from __future__ import annotations

from pydantic import Field

from modules.orders.dtos import (
    ItemRequestDTO,
    ItemRequestLineDTO,
    ItemRequestOutputDTO,
    UpdateItemRequestDTO,
)


class ReturnItemDTO(ItemRequestLineDTO):
    remarks: str = Field(default="", max_length=1000)


class RequestReturnDTO(ItemRequestDTO):
    items: list[ReturnItemDTO]


class UpdateReturnDTO(UpdateItemRequestDTO):
    items: list[ReturnItemDTO]


class ReturnOutputDTO(ItemRequestOutputDTO):
    """Return with its lines and their remarks."""
