"""
Unit tests for cart settlement.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from cartflow.models.promotion import Promotion
from cartflow.services.settlement import SettlementLine, settle

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
BREAD = uuid.uuid4()
PASTRY = uuid.uuid4()


def _pastry_promotion(pct='20') -> Promotion:
    return Promotion(
        id=uuid.uuid4(),
        name='Pastry week',
        discount_percentage=Decimal(pct),
        start_date=NOW - timedelta(days=1),
        end_date=None,
        is_active=True,
        applies_to_all_products=False,
        product_ids=[],
        category_ids=[str(PASTRY)],
        company_id=None,
        created_at=NOW - timedelta(days=1),
        updated_at=NOW - timedelta(days=1),
    )


def _lines():
    return [
        SettlementLine(
            product_id=uuid.uuid4(),
            quantity=2,
            unit_price=Decimal('10.00'),
            category_id=BREAD,
        ),
        SettlementLine(
            product_id=uuid.uuid4(),
            quantity=1,
            unit_price=Decimal('25.00'),
            category_id=PASTRY,
        ),
    ]


class TestSettle:
    """Totals computed from lines and live promotions."""

    def test_category_discount_on_one_line(self):
        promo = _pastry_promotion()
        result = settle(_lines(), [promo], None, NOW)

        bread_line, pastry_line = result.lines
        assert bread_line.net == Decimal('20.00')
        assert not bread_line.discounted
        assert pastry_line.discount == Decimal('5')
        assert pastry_line.net == Decimal('20')
        assert pastry_line.promotion_id == promo.id

        assert result.gross_total == Decimal('45')
        assert result.discount_total == Decimal('5')
        assert result.rounded_total == Decimal('40.00')

    def test_without_promotions(self):
        result = settle(_lines(), [], None, NOW)
        assert result.discount_total == Decimal('0')
        assert result.grand_total == result.gross_total == Decimal('45')
        assert result.discounted_lines() == []

    def test_line_order_does_not_change_totals(self):
        promos = [_pastry_promotion()]
        lines = _lines()
        forward = settle(lines, promos, None, NOW)
        backward = settle(list(reversed(lines)), promos, None, NOW)
        assert forward.grand_total == backward.grand_total
        assert forward.discount_total == backward.discount_total

    def test_same_inputs_same_result(self):
        promos = [_pastry_promotion()]
        lines = _lines()
        assert settle(lines, promos, None, NOW) == settle(lines, promos, None, NOW)

    def test_expired_promotion_not_applied_later(self):
        promo = _pastry_promotion()
        promo.end_date = NOW + timedelta(hours=1)
        later = settle(_lines(), [promo], None, NOW + timedelta(days=1))
        assert later.rounded_total == Decimal('45.00')

    def test_rounding_happens_once_on_the_total(self):
        lines = [
            SettlementLine(
                product_id=uuid.uuid4(),
                quantity=3,
                unit_price=Decimal('3.33'),
                category_id=PASTRY,
            )
        ]
        result = settle(lines, [_pastry_promotion('15')], None, NOW)
        assert result.lines[0].discount == Decimal('1.498500')
        assert result.grand_total == Decimal('8.491500')
        assert result.rounded_total == Decimal('8.49')

    def test_missing_product_counts_nothing(self):
        gone = uuid.uuid4()
        lines = _lines() + [
            SettlementLine(
                product_id=gone,
                quantity=4,
                unit_price=Decimal('7.00'),
                missing=True,
            )
        ]
        result = settle(lines, [_pastry_promotion()], None, NOW)
        assert result.missing_products == [gone]
        assert result.lines[-1].net == Decimal('0')
        assert result.rounded_total == Decimal('40.00')

    def test_empty_cart(self):
        result = settle([], [_pastry_promotion()], None, NOW)
        assert result.lines == ()
        assert result.rounded_total == Decimal('0.00')
