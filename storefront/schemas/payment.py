from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from typing import Dict, List, Optional, Union

from storefront.schemas.cart import CartLinesIn

DEFAULT_CURRENCY = "BRL"

# Request body for POST /api/payment/create-session
class PaymentSessionCreate(CartLinesIn):
    currency: str = Field(default=DEFAULT_CURRENCY, pattern=r"^[A-Za-z]{3}$")

    @field_validator("currency")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()


# Line item rebuilt from the system of record; safe to charge
class VerifiedLineItem(BaseModel):
    id: Union[int, str]
    name: str
    price: Decimal
    quantity: int = Field(ge=1)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @field_serializer("price")
    def _price_as_number(self, price: Decimal) -> float:
        return float(price)


# Provider-agnostic session request handed to a PaymentProvider
class PaymentSessionRequest(BaseModel):
    items: List[VerifiedLineItem] = Field(min_length=1)
    currency: str = Field(pattern=r"^[A-Z]{3}$")
    metadata: Dict[str, str] = Field(default_factory=dict)

    @property
    def total(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))


# Handle returned by a provider; serialised in camelCase for the storefront
class ProviderSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    checkout_url: Optional[str] = Field(default=None, alias="checkoutUrl")
    status: str = "pending"
    provider: str
