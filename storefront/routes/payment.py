# storefront/routes/payment.py
import logging

import pydantic
from fastapi import APIRouter, Depends, Request

from storefront.schemas.payment import PaymentSessionCreate
from storefront.utils.api import add_method_not_allowed_route, json_response, read_json
from storefront.utils.checkout import create_payment_session
from storefront.utils.errors import StorefrontError, ValidationError, field_errors
from storefront.utils.payment_providers import PaymentProvider, PaymentProviderError, get_payment_provider
from storefront.utils.pricing import verify_cart_items
from storefront.utils.product_catalog import ProductCatalog, get_product_catalog
from storefront.utils.rate_limit import rate_limited

router = APIRouter(prefix="/api/payment", tags=["Payment"])
rate_limit = [Depends(rate_limited("payment"))]
logger = logging.getLogger(__name__)


@router.post("/create-session", dependencies=rate_limit)
async def create_session(
    request: Request,
    catalog: ProductCatalog = Depends(get_product_catalog),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """Create a hosted payment session for the cart.

    Only ids and quantities are accepted from the client; prices are read from
    the product store before anything is sent to the payment provider.
    """
    payload = await read_json(request)
    if payload is None:
        raise ValidationError({"body": ["Request body must be valid JSON"]})

    # 1. Validate input structure before touching any upstream
    try:
        data = PaymentSessionCreate.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(field_errors(e))

    # 2. Rebuild items with authoritative prices
    items = await verify_cart_items(data.items, catalog)

    # 3. Delegate to the active payment provider
    try:
        session = await create_payment_session(provider, items, data.currency)
    except StorefrontError:
        raise
    except Exception as e:
        logger.exception("Payment provider %s failed", provider.name)
        raise PaymentProviderError(detail=str(e)) from e

    return json_response(request, {"success": True, "data": session.model_dump(by_alias=True)})


add_method_not_allowed_route(router, "/create-session", "POST", dependencies=rate_limit)
