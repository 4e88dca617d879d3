# storefront/populate_db.py
"""Seed the products table with the storefront's launch catalog.

Usage: DATABASE_URL=... python -m storefront.populate_db
Existing products (matched by slug) are updated in place.
"""
import logging
from decimal import Decimal

from storefront.database import SessionLocal, init_db
from storefront.models.product import Product

logger = logging.getLogger(__name__)

# (slug, name, category, price, promotional price)
CATALOG = [
    ("kit-3-calcinhas-algodao-soft", "Kit 3 Calcinhas Algodão Soft", "Calcinhas", "49.90", "39.90"),
    ("sutia-renda-comfort-sem-bojo", "Sutiã Renda Comfort Sem Bojo", "Sutiãs", "59.90", None),
    ("cueca-boxer-feminina-modal", "Cueca Boxer Feminina Modal", "Cuecas", "29.90", None),
    ("kit-5-pares-meias-invisiveis", "Kit 5 Pares de Meias Invisíveis", "Meias", "35.00", "29.90"),
    ("sutia-push-up-basico", "Sutiã Push-Up Básico", "Sutiãs", "69.90", None),
]


def seed(session) -> int:
    count = 0
    for slug, name, category, price, promo in CATALOG:
        product = session.query(Product).filter(Product.slug == slug).first()
        if product is None:
            product = Product(slug=slug)
            session.add(product)
        product.name = name
        product.category = category
        product.price = Decimal(price)
        product.promotional_price = Decimal(promo) if promo else None
        product.active = True
        count += 1
    session.commit()
    return count


def main():
    logging.basicConfig(level=logging.INFO)
    if SessionLocal is None:
        raise SystemExit("DATABASE_URL is not set")

    init_db()
    session = SessionLocal()
    try:
        count = seed(session)
    finally:
        session.close()
    logger.info("Seeded %d products", count)


if __name__ == "__main__":
    main()
