# storefront/schemas/product.py
from decimal import Decimal
from pydantic import BaseModel, ConfigDict
from typing import Optional, Union


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Authoritative product row as read from the system of record
class CatalogProduct(ORMBase):
    id: Union[int, str]
    name: str
    price: Decimal
    promotional_price: Optional[Decimal] = None

    @property
    def active_price(self) -> Decimal:
        # The promotional price wins only when it is set and positive
        if self.promotional_price is not None and self.promotional_price > 0:
            return self.promotional_price
        return self.price
