from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from typing import List

from storefront.schemas.cart import CartLinesIn

# Request body for POST /api/shipping/calculate
class ShippingQuoteIn(CartLinesIn):
    zip_code: str = Field(alias="zipCode", pattern=r"^\d{5}-?\d{3}$")


# Single delivery option, camelCase on the wire like the rest of the storefront API
class ShippingOption(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    carrier: str
    service: str
    price: Decimal
    original_price: Decimal = Field(alias="originalPrice")
    delivery_days: int = Field(alias="deliveryDays")
    delivery_range: str = Field(alias="deliveryRange")
    is_free: bool = Field(alias="isFree")

    @field_serializer("price", "original_price")
    def _as_number(self, value: Decimal) -> float:
        return float(value)


class ShippingQuoteOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subtotal: Decimal
    free_shipping_threshold: Decimal = Field(alias="freeShippingThreshold")
    options: List[ShippingOption]

    @field_serializer("subtotal", "free_shipping_threshold")
    def _as_number(self, value: Decimal) -> float:
        return float(value)
