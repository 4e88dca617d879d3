# storefront/routes/shipping.py
import pydantic
from fastapi import APIRouter, Depends, Request

from storefront.schemas.shipping import ShippingQuoteIn, ShippingQuoteOut
from storefront.utils.api import add_method_not_allowed_route, json_response, read_json
from storefront.utils.errors import ValidationError, field_errors
from storefront.utils.pricing import verify_cart_items
from storefront.utils.product_catalog import ProductCatalog, get_product_catalog
from storefront.utils.rate_limit import rate_limited
from storefront.utils.shipping import FREE_SHIPPING_THRESHOLD, quote_shipping, subtotal

router = APIRouter(prefix="/api/shipping", tags=["Shipping"])
rate_limit = [Depends(rate_limited("shipping"))]


# Quotes are computed from verified prices, so free shipping cannot be
# unlocked by inflating prices on the client.
@router.post("/calculate", dependencies=rate_limit)
async def calculate(
    request: Request,
    catalog: ProductCatalog = Depends(get_product_catalog),
):
    payload = await read_json(request)
    if payload is None:
        raise ValidationError({"body": ["Request body must be valid JSON"]})

    try:
        data = ShippingQuoteIn.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(field_errors(e))

    items = await verify_cart_items(data.items, catalog)
    out = ShippingQuoteOut(
        subtotal=subtotal(items),
        free_shipping_threshold=FREE_SHIPPING_THRESHOLD,
        options=quote_shipping(items),
    )
    return json_response(request, out.model_dump(by_alias=True))


add_method_not_allowed_route(router, "/calculate", "POST", dependencies=rate_limit)
