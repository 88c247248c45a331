# cartflow/services/settlement.py
"""
Totals calculator.

`settle` is pure: the same lines, promotions, company and instant always
give the same result, and the result does not depend on line order.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Sequence

from cartflow.core.money import ZERO, line_gross, percent_of, quantize_display
from cartflow.models.promotion import Promotion
from cartflow.services.promotion_resolver import resolve


@dataclass(frozen=True)
class SettlementLine:
    """A cart line with its product already resolved from the catalog."""

    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    category_id: uuid.UUID | None = None
    sub_category_id: uuid.UUID | None = None
    missing: bool = False


@dataclass(frozen=True)
class LineSettlement:
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    gross: Decimal
    discount: Decimal
    net: Decimal
    promotion_id: uuid.UUID | None = None
    discount_percentage: Decimal = ZERO
    missing: bool = False

    @property
    def discounted(self) -> bool:
        return self.promotion_id is not None


@dataclass(frozen=True)
class Settlement:
    lines: tuple[LineSettlement, ...] = field(default_factory=tuple)
    gross_total: Decimal = ZERO
    discount_total: Decimal = ZERO
    grand_total: Decimal = ZERO

    @property
    def rounded_total(self) -> Decimal:
        """The value persisted as the cart total."""
        return quantize_display(self.grand_total)

    @property
    def missing_products(self) -> list[uuid.UUID]:
        return [line.product_id for line in self.lines if line.missing]

    def discounted_lines(self) -> list[LineSettlement]:
        return [line for line in self.lines if line.discounted]


def settle_line(
    line: SettlementLine,
    promotions: Sequence[Promotion],
    company_ref: uuid.UUID | None,
    at: datetime,
) -> LineSettlement:
    if line.missing:
        # Product vanished from the catalog: keep the line visible, count nothing
        return LineSettlement(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            gross=ZERO,
            discount=ZERO,
            net=ZERO,
            missing=True,
        )

    gross = line_gross(line.unit_price, line.quantity)
    match = resolve(
        promotions,
        line.product_id,
        line.category_id,
        company_ref,
        at,
        sub_category_ref=line.sub_category_id,
    )
    if match is None:
        return LineSettlement(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            gross=gross,
            discount=ZERO,
            net=gross,
        )

    discount = percent_of(gross, match.discount_percentage)
    return LineSettlement(
        product_id=line.product_id,
        quantity=line.quantity,
        unit_price=line.unit_price,
        gross=gross,
        discount=discount,
        net=gross - discount,
        promotion_id=match.promotion_id,
        discount_percentage=match.discount_percentage,
    )


def settle(
    lines: Iterable[SettlementLine],
    promotions: Sequence[Promotion],
    company_ref: uuid.UUID | None,
    at: datetime,
) -> Settlement:
    settled = tuple(settle_line(line, promotions, company_ref, at) for line in lines)
    return Settlement(
        lines=settled,
        gross_total=sum((line.gross for line in settled), ZERO),
        discount_total=sum((line.discount for line in settled), ZERO),
        grand_total=sum((line.net for line in settled), ZERO),
    )
