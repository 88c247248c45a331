# cartflow/repositories/product_repo.py
import uuid
from typing import Iterable

from sqlmodel import Session, select

from cartflow.models.product import Category, Product


class ProductRepository:
    """
    Read access to the catalog (products, categories).

    - Pure DB operations, no business logic.
    - Catalog writes belong to the catalog service, not here.
    """

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def resolve_products(
        self,
        session: Session,
        product_ids: Iterable[uuid.UUID],
    ) -> dict[uuid.UUID, Product]:
        """
        Resolve product references in one query. Missing ids are simply
        absent from the result.
        """
        ids = list(set(product_ids))
        if not ids:
            return {}
        stmt = select(Product).where(Product.id.in_(ids))
        return {p.id: p for p in session.exec(stmt).all()}

    def get_category(self, session: Session, category_id: uuid.UUID) -> Category | None:
        return session.get(Category, category_id)
