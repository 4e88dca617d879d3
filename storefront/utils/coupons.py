# storefront/utils/coupons.py
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from storefront.utils.money import D, format_brl


@dataclass(frozen=True)
class Coupon:
    code: str
    discount: Decimal  # 0.10 = 10%
    description: str
    min_cart_total: Optional[Decimal] = None


@dataclass(frozen=True)
class CouponResult:
    valid: bool
    discount: Decimal
    message: str
    status_code: int = 200

    def to_body(self) -> dict:
        return {"valid": self.valid, "discount": float(self.discount), "message": self.message}


# Server-side only. Nothing outside this module sees the table; callers
# receive a CouponResult for the single code they asked about.
_COUPONS: Dict[str, Coupon] = {
    c.code: c
    for c in (
        Coupon("BEMVINDA10", Decimal("0.10"), "10% de desconto"),
        Coupon("LYVEST2026", Decimal("0.15"), "15% de desconto", min_cart_total=Decimal("50")),
        Coupon("PROMO5", Decimal("0.05"), "5% de desconto"),
    )
}


def normalize_code(code) -> str:
    if not isinstance(code, str):
        return ""
    return code.strip().upper()


def _cart_total(value) -> Decimal:
    # Non-numeric totals count as an empty cart
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return Decimal("0")
    total = D(value)
    return total if total.is_finite() else Decimal("0")


def _percent(rate: Decimal) -> str:
    return f"{(rate * 100).normalize():f}"


def validate_coupon(code, cart_total=None) -> CouponResult:
    """Check `code` against the coupon table for a cart worth `cart_total`.

    Stateless: the same inputs always give the same result. An empty code is
    a malformed request (400); an unknown code is a normal outcome (200).
    """
    normalized = normalize_code(code)
    if not normalized:
        return CouponResult(False, Decimal("0"), "Enter a valid coupon code.", status_code=400)

    coupon = _COUPONS.get(normalized)
    if coupon is None:
        return CouponResult(False, Decimal("0"), "Invalid or expired coupon.")

    total = _cart_total(cart_total)
    if coupon.min_cart_total is not None and total < coupon.min_cart_total:
        return CouponResult(
            False,
            Decimal("0"),
            f"This coupon requires a minimum order of {format_brl(coupon.min_cart_total)}.",
        )

    return CouponResult(
        True,
        coupon.discount,
        f"Coupon {coupon.code} applied! ({_percent(coupon.discount)}% OFF)",
    )
