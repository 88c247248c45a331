"""
Unit tests for promotion applicability and precedence.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from cartflow.models.promotion import Promotion
from cartflow.services.promotion_resolver import (
    PromotionState,
    candidates,
    is_applicable,
    promotion_state,
    resolve,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
PRODUCT = uuid.uuid4()
CATEGORY = uuid.uuid4()
SUB_CATEGORY = uuid.uuid4()
COMPANY = uuid.uuid4()


def _promo(**fields) -> Promotion:
    values = {
        'id': uuid.uuid4(),
        'name': 'Promo',
        'discount_percentage': Decimal('10'),
        'start_date': NOW - timedelta(days=5),
        'end_date': None,
        'is_active': True,
        'applies_to_all_products': False,
        'product_ids': [],
        'category_ids': [],
        'company_id': None,
        'created_at': NOW - timedelta(days=5),
        'updated_at': NOW - timedelta(days=5),
    }
    values.update(fields)
    return Promotion(**values)


def _resolve(promotions, company=COMPANY, at=NOW):
    return resolve(promotions, PRODUCT, CATEGORY, company, at, sub_category_ref=SUB_CATEGORY)


class TestMatching:
    """Which products a promotion covers."""

    def test_all_products(self):
        promo = _promo(applies_to_all_products=True)
        assert _resolve([promo]).promotion_id == promo.id

    def test_empty_scope_matches_nothing(self):
        assert _resolve([_promo()]) is None

    def test_product_list(self):
        promo = _promo(product_ids=[str(PRODUCT)])
        assert _resolve([promo]).promotion is promo

    def test_category_list(self):
        promo = _promo(category_ids=[str(CATEGORY)])
        assert _resolve([promo]) is not None

    def test_sub_category_counts_as_category(self):
        promo = _promo(category_ids=[str(SUB_CATEGORY)])
        assert _resolve([promo]) is not None

    def test_unrelated_lists(self):
        promo = _promo(product_ids=[str(uuid.uuid4())], category_ids=[str(uuid.uuid4())])
        assert _resolve([promo]) is None


class TestApplicability:
    """Kill switch, dates and company scope."""

    def test_disabled_promotion_ignored(self):
        assert _resolve([_promo(applies_to_all_products=True, is_active=False)]) is None

    def test_upcoming_promotion_ignored(self):
        promo = _promo(applies_to_all_products=True, start_date=NOW + timedelta(hours=1))
        assert promotion_state(promo, NOW) == PromotionState.UPCOMING
        assert _resolve([promo]) is None

    def test_expired_promotion_ignored(self):
        promo = _promo(applies_to_all_products=True, end_date=NOW - timedelta(seconds=1))
        assert promotion_state(promo, NOW) == PromotionState.EXPIRED
        assert _resolve([promo]) is None

    def test_end_date_is_inclusive(self):
        promo = _promo(applies_to_all_products=True, end_date=NOW)
        assert promotion_state(promo, NOW) == PromotionState.ACTIVE
        assert _resolve([promo]) is not None

    def test_naive_dates_read_as_utc(self):
        promo = _promo(
            applies_to_all_products=True,
            start_date=datetime(2026, 3, 10, 11, 0),
        )
        assert is_applicable(promo, NOW, None)

    def test_company_scoped_promotion(self):
        promo = _promo(applies_to_all_products=True, company_id=COMPANY)
        assert _resolve([promo], company=COMPANY) is not None
        assert _resolve([promo], company=uuid.uuid4()) is None
        assert _resolve([promo], company=None) is None

    def test_global_promotion_reaches_guests(self):
        assert _resolve([_promo(applies_to_all_products=True)], company=None) is not None


class TestPrecedence:
    """Discounts never stack: exactly one winner."""

    def test_highest_percentage_wins(self):
        low = _promo(applies_to_all_products=True, discount_percentage=Decimal('10'))
        high = _promo(category_ids=[str(CATEGORY)], discount_percentage=Decimal('25'))
        match = _resolve([low, high])
        assert match.promotion is high
        assert match.discount_percentage == Decimal('25')

    def test_tie_goes_to_most_recent(self):
        older = _promo(applies_to_all_products=True, created_at=NOW - timedelta(days=3))
        newer = _promo(applies_to_all_products=True, created_at=NOW - timedelta(days=1))
        assert _resolve([older, newer]).promotion is newer
        assert _resolve([newer, older]).promotion is newer

    def test_full_tie_is_still_deterministic(self):
        created = NOW - timedelta(days=2)
        first = _promo(applies_to_all_products=True, created_at=created)
        second = _promo(applies_to_all_products=True, created_at=created)
        expected = max(first, second, key=lambda p: str(p.id))
        assert _resolve([first, second]).promotion is expected
        assert _resolve([second, first]).promotion is expected

    def test_candidates_are_ranked(self):
        promos = [
            _promo(applies_to_all_products=True, discount_percentage=Decimal(p))
            for p in ('5', '30', '15')
        ]
        ranked = candidates(promos, PRODUCT, CATEGORY, COMPANY, NOW)
        assert [p.discount_percentage for p in ranked] == [
            Decimal('30'),
            Decimal('15'),
            Decimal('5'),
        ]

    def test_no_promotions(self):
        assert _resolve([]) is None
