# storefront/routes/coupons.py
import logging

from fastapi import APIRouter, Depends, Request

from storefront.utils.api import add_method_not_allowed_route, json_response, read_json
from storefront.utils.coupons import validate_coupon
from storefront.utils.rate_limit import rate_limited

router = APIRouter(prefix="/api/coupons", tags=["Coupons"])
rate_limit = [Depends(rate_limited("coupon"))]
logger = logging.getLogger(__name__)


@router.post("/validate", dependencies=rate_limit)
async def validate(request: Request):
    """Validate a coupon code for the current cart total.

    Body: {"code": str, "cartTotal"?: number}
    Response: {"valid": bool, "discount": number, "message": str}
    """
    payload = await read_json(request)
    if not isinstance(payload, dict):
        payload = {}

    try:
        result = validate_coupon(payload.get("code"), payload.get("cartTotal"))
    except Exception:
        logger.exception("Coupon validation error")
        return json_response(
            request,
            {"valid": False, "discount": 0, "message": "Could not validate coupon."},
            status_code=500,
        )

    return json_response(request, result.to_body(), status_code=result.status_code)


add_method_not_allowed_route(router, "/validate", "POST", dependencies=rate_limit)
