# storefront/utils/shipping.py
from decimal import Decimal
from typing import List, Sequence

from storefront.schemas.payment import VerifiedLineItem
from storefront.schemas.shipping import ShippingOption
from storefront.utils.money import round_money

FREE_SHIPPING_THRESHOLD = Decimal("150.00")

# (id, carrier, service, base cost, delivery days, range label, eligible for free shipping)
SERVICES = [
    ("pac", "Correios", "PAC", Decimal("15.90"), 7, "5 a 9 dias úteis", True),
    ("sedex", "Correios", "SEDEX", Decimal("29.90"), 3, "2 a 4 dias úteis", False),
]


def subtotal(items: Sequence[VerifiedLineItem]) -> Decimal:
    return round_money(sum((item.line_total for item in items), Decimal("0")))


def quote_shipping(items: Sequence[VerifiedLineItem]) -> List[ShippingOption]:
    total = subtotal(items)
    free = total >= FREE_SHIPPING_THRESHOLD

    options = []
    for service_id, carrier, service, cost, days, label, free_eligible in SERVICES:
        is_free = free and free_eligible
        options.append(ShippingOption(
            id=service_id,
            carrier=carrier,
            service=service,
            price=Decimal("0.00") if is_free else cost,
            original_price=cost,
            delivery_days=days,
            delivery_range=label,
            is_free=is_free,
        ))
    return options
