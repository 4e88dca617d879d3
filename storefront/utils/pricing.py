# storefront/utils/pricing.py
import logging
from typing import Dict, List, Sequence

from storefront.schemas.cart import CartLineRequest
from storefront.schemas.payment import VerifiedLineItem
from storefront.schemas.product import CatalogProduct
from storefront.utils.errors import ProductNotFoundError, UpstreamUnavailableError, ValidationError
from storefront.utils.product_catalog import ProductCatalog

logger = logging.getLogger(__name__)


async def verify_cart_items(lines: Sequence[CartLineRequest], catalog: ProductCatalog) -> List[VerifiedLineItem]:
    """Rebuild client cart lines from the system of record.

    Only `id` and `quantity` come from the client. Name and price are read
    from the catalog in the same call, so a tampered price never reaches a
    payment session. Any id without an active product fails the whole cart.
    """
    if not lines:
        raise ValidationError({"items": ["Cart cannot be empty"]})

    # dict keeps first-seen order while dropping duplicate ids
    ids = list(dict.fromkeys(str(line.id) for line in lines))
    products = await catalog.fetch_active_products(ids)
    if not products:
        logger.error("Product lookup returned no rows for ids %s", ids)
        raise UpstreamUnavailableError(detail=f"No products found for ids {ids}")

    by_id: Dict[str, CatalogProduct] = {str(p.id): p for p in products}

    verified = []
    for line in lines:
        product = by_id.get(str(line.id))
        if product is None:
            logger.warning("Product %s not found or inactive", line.id)
            raise ProductNotFoundError(detail=f"Product {line.id} not found in database")

        verified.append(VerifiedLineItem(
            id=product.id,
            name=product.name,
            price=product.active_price,
            quantity=line.quantity,
        ))
    return verified
