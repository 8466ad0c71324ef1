"""Refundable amount calculation for partially cancelled or returned orders.

For a set of ``(order item, quantity)`` pairs the calculator splits the
order's money components proportionally:

- base = ``unit_price * quantity``
- discount = the line discount pro-rated by quantity, plus the order-level
  discount pro-rated by the line's net share of the subtotal
- tax = order tax pro-rated by the same net share
- shipping = the order's shipping charges, only when the request leaves
  nothing un-cancelled/un-returned; spread over the lines by net value with
  the rounding remainder on the last line

Discount and tax are allocated against cumulative quantities: a line worth
``q`` units of an item of which ``s`` were already settled gets
``round(f(s + q)) - round(f(s))``.  The request that closes the order gets
exactly what the order charged minus what earlier refunds were allocated,
so the refunds of a fully closed order add up to its total.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID

from modules.core.exceptions import ValidationFailure

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RefundLine:
    order_item_id: UUID
    quantity: int
    base_amount: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal

    @property
    def amount(self) -> Decimal:
        return self.base_amount - self.discount_amount + self.tax_amount + self.shipping_amount


@dataclass(frozen=True)
class RefundBreakdown:
    lines: Tuple[RefundLine, ...]

    @property
    def base_amount(self) -> Decimal:
        return sum((line.base_amount for line in self.lines), ZERO)

    @property
    def discount_amount(self) -> Decimal:
        return sum((line.discount_amount for line in self.lines), ZERO)

    @property
    def tax_amount(self) -> Decimal:
        return sum((line.tax_amount for line in self.lines), ZERO)

    @property
    def shipping_amount(self) -> Decimal:
        return sum((line.shipping_amount for line in self.lines), ZERO)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.lines), ZERO)

    def amount_for(self, order_item_id: UUID) -> Decimal:
        for line in self.lines:
            if line.order_item_id == order_item_id:
                return line.amount
        return ZERO


@dataclass(frozen=True)
class Allocated:
    """Money components already allocated to earlier refunds of an order."""

    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    shipping_amount: Decimal = ZERO

    @classmethod
    def from_refunds(cls, refunds: Iterable[Any]) -> Allocated:
        refunds = list(refunds)
        return cls(
            discount_amount=sum((Decimal(r.discount_amount) for r in refunds), ZERO),
            tax_amount=sum((Decimal(r.tax_amount) for r in refunds), ZERO),
            shipping_amount=sum((Decimal(r.shipping_amount) for r in refunds), ZERO),
        )


class RefundCalculator:
    """Pro-rates order money over the units being refunded."""

    def calculate(
        self,
        order: Any,
        quantities: Sequence[Tuple[UUID, int]] | Mapping[UUID, int],
        closes_order: bool = False,
        settled: Optional[Mapping[UUID, int]] = None,
        allocated: Optional[Allocated] = None,
    ) -> RefundBreakdown:
        """Break the refund of *quantities* into per-line components.

        *settled* holds the units per item already cancelled or returned;
        *allocated* the components earlier refunds took.  Both only matter
        for the rounding of cumulative allocations.
        """
        pairs = list(quantities.items()) if isinstance(quantities, Mapping) else list(quantities)
        items = {item.id: item for item in order.items.all()}
        settled = settled or {}

        partial: List[List[Any]] = []
        nets: List[Decimal] = []
        for order_item_id, quantity in pairs:
            item = items.get(order_item_id)
            if item is None:
                raise ValidationFailure(
                    f"Item {order_item_id} does not belong to order {order.id}."
                )
            before = settled.get(order_item_id, 0)
            if quantity < 1 or before + quantity > item.quantity:
                raise ValidationFailure(
                    f"Quantity {quantity} is out of range for item {order_item_id}."
                )

            after = before + quantity
            discount = self._discount(order, item, after) - self._discount(order, item, before)
            tax = self._tax(order, item, after) - self._tax(order, item, before)
            base = quantize(Decimal(item.unit_price) * quantity)
            partial.append([order_item_id, quantity, base, discount, tax])
            nets.append(self._net(item, quantity))

        shipping_due = ZERO
        if closes_order and partial:
            allocated = allocated or Allocated()
            discount_due = (
                sum((Decimal(i.discount_amount) for i in items.values()), ZERO)
                + Decimal(order.discount_amount)
                - allocated.discount_amount
            )
            tax_due = Decimal(order.tax_amount) - allocated.tax_amount
            shipping_due = Decimal(order.shipping_charges) - allocated.shipping_amount
            # The last line absorbs the rounding remainder.
            partial[-1][3] += discount_due - sum((p[3] for p in partial), ZERO)
            partial[-1][4] += tax_due - sum((p[4] for p in partial), ZERO)

        shipping = self._allocate_shipping(shipping_due, nets)
        lines = tuple(
            RefundLine(
                order_item_id=order_item_id,
                quantity=quantity,
                base_amount=base,
                discount_amount=discount,
                tax_amount=tax,
                shipping_amount=shipping[index],
            )
            for index, (order_item_id, quantity, base, discount, tax) in enumerate(partial)
        )
        return RefundBreakdown(lines=lines)

    @staticmethod
    def _net(item: Any, quantity: int) -> Decimal:
        line_discount = Decimal(item.discount_amount) * quantity / item.quantity
        return Decimal(item.unit_price) * quantity - line_discount

    def _share(self, order: Any, item: Any, quantity: int) -> Decimal:
        subtotal = Decimal(order.subtotal_amount)
        return self._net(item, quantity) / subtotal if subtotal else ZERO

    def _discount(self, order: Any, item: Any, quantity: int) -> Decimal:
        line_discount = Decimal(item.discount_amount) * quantity / item.quantity
        return quantize(
            line_discount + Decimal(order.discount_amount) * self._share(order, item, quantity)
        )

    def _tax(self, order: Any, item: Any, quantity: int) -> Decimal:
        return quantize(Decimal(order.tax_amount) * self._share(order, item, quantity))

    @staticmethod
    def _allocate_shipping(shipping: Decimal, nets: List[Decimal]) -> List[Decimal]:
        if not nets:
            return []
        if not shipping:
            return [ZERO for _ in nets]
        total_net = sum(nets, ZERO)
        shares: List[Decimal] = []
        for net in nets[:-1]:
            if total_net:
                shares.append(quantize(shipping * net / total_net))
            else:
                shares.append(quantize(shipping / len(nets)))
        shares.append(quantize(shipping) - sum(shares, ZERO))
        return shares
