# storefront/models/product.py
from sqlalchemy import Boolean, CheckConstraint, Column, Integer, Numeric, String
from storefront.database import Base

# Product
# System of record for catalog pricing. Checkout re-reads price and
# promotional_price from this table on every payment-session request.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    slug = Column(String, unique=True, nullable=True, index=True)

    description = Column(String)
    category = Column(String, index=True)

    # Prices in BRL; promotional_price overrides price when set and > 0.
    price = Column(Numeric(10, 2), CheckConstraint("price >= 0"), nullable=False)
    promotional_price = Column(
        Numeric(10, 2), CheckConstraint("promotional_price IS NULL OR promotional_price >= 0"), nullable=True
    )

    # Inactive products are never sold, even if a client still has them in a cart.
    active = Column(Boolean, nullable=False, default=True, index=True)

    image_url = Column(String, nullable=True)
