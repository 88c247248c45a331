"""
Repository tests for promotion listing.
"""

import importlib

from cartflow.repositories.promotion_repo import PromotionRepository


class TestPromotionListing:
    """Paged, company-filtered listing."""

    def test_module_imports_cleanly(self):
        module = importlib.reload(importlib.import_module('cartflow.repositories.promotion_repo'))
        assert callable(module.PromotionRepository.list_all)
        assert callable(module.PromotionRepository.list_live)

    def test_list_all_filters_and_pages(self, session, make_promotion, company, other_company):
        make_promotion(name='Global')
        make_promotion(name='Ours', company_id=company.id)
        make_promotion(name='Also ours', company_id=company.id)
        make_promotion(name='Theirs', company_id=other_company.id)
        repo = PromotionRepository()

        assert len(repo.list_all(session)) == 4
        ours = repo.list_all(session, company.id)
        assert {p.name for p in ours} == {'Ours', 'Also ours'}
        assert repo.count(session, company.id) == 2
        assert len(repo.list_all(session, skip=1, limit=2)) == 2
