"""
Integration tests for the admin cart statistics.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from cartflow.core.clock import utcnow
from cartflow.models.cart import Cart

API = '/api/v1'


@pytest.fixture
def processed_carts(session, user, other_user):
    """Processed carts today, two days ago and eight days ago, plus noise."""
    now = utcnow()
    carts = [
        Cart(user_id=user.id, status='processed', total=Decimal('30.00'), created_at=now),
        Cart(
            user_id=other_user.id,
            status='processed',
            total=Decimal('12.50'),
            created_at=now - timedelta(days=2),
        ),
        Cart(
            user_id=user.id,
            status='processed',
            total=Decimal('99.00'),
            created_at=now - timedelta(days=8),
        ),
        Cart(user_id=other_user.id, status='cancelled', total=Decimal('5.00'), created_at=now),
    ]
    session.add_all(carts)
    session.commit()
    return carts


class TestCartStats:
    """Buckets, summary and rankings."""

    def test_seven_day_window(self, client, admin_headers, processed_carts, company, other_company):
        response = client.get(
            f'{API}/admin/stats/carts',
            params={'period': '7d', 'status': 'processed'},
            headers=admin_headers,
        )
        assert response.status_code == 200
        body = response.json()

        assert body['status'] == 'processed'
        assert body['status_label'] == 'traité'
        assert body['summary'] == {
            'total_carts': 2,
            'total_amount': '42.50',
            'average_cart': '21.25',
        }

        buckets = body['daily_stats']
        assert len(buckets) == 7
        assert [b['count'] for b in buckets] == [0, 0, 0, 0, 1, 0, 1]
        assert buckets[-1]['total'] == '30.00'
        assert buckets[4]['average'] == '12.50'
        assert buckets[0]['average'] == '0.00'

        assert [c['name'] for c in body['top_companies']] == [company.name, other_company.name]
        assert body['top_clients'][0]['name'] == 'Claire Martin'
        assert body['top_clients'][0]['total'] == '30.00'

    def test_other_status_and_french_label(self, client, admin_headers, processed_carts):
        response = client.get(
            f'{API}/admin/stats/carts',
            params={'period': '24h', 'status': 'annulé'},
            headers=admin_headers,
        )
        body = response.json()
        assert body['status'] == 'cancelled'
        assert len(body['daily_stats']) == 24
        assert body['summary']['total_carts'] == 1
        assert body['daily_stats'][-1]['count'] == 1

    def test_long_period_includes_older_cart(self, client, admin_headers, processed_carts):
        response = client.get(
            f'{API}/admin/stats/carts',
            params={'period': '30d'},
            headers=admin_headers,
        )
        body = response.json()
        assert len(body['daily_stats']) == 30
        assert body['summary']['total_carts'] == 3
        assert body['top_clients'][0]['total'] == '129.00'

    def test_empty_window(self, client, admin_headers):
        body = client.get(f'{API}/admin/stats/carts', headers=admin_headers).json()
        assert body['summary']['total_carts'] == 0
        assert body['summary']['average_cart'] == '0.00'
        assert body['top_companies'] == []

    def test_unknown_period(self, client, admin_headers):
        response = client.get(
            f'{API}/admin/stats/carts',
            params={'period': '90d'},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_admin_only(self, client, user_headers):
        response = client.get(f'{API}/admin/stats/carts', headers=user_headers)
        assert response.status_code == 403
