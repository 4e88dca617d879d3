from pydantic import BaseModel, Field, StrictInt, field_validator
from typing import List, Union
from pydantic_core import PydanticCustomError

MAX_CART_LINES = 50
MAX_QUANTITY_PER_LINE = 99

# Client-submitted cart line. Only id and quantity are read from the client;
# any other field it sends (price, name, ...) is ignored.
class CartLineRequest(BaseModel):
    id: Union[StrictInt, str]
    quantity: StrictInt = Field(ge=1, le=MAX_QUANTITY_PER_LINE)

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise PydanticCustomError("invalid_id", "Product id must not be empty")
        return v


# Request body shared by endpoints that price a cart
class CartLinesIn(BaseModel):
    items: List[CartLineRequest] = Field(max_length=MAX_CART_LINES)

    @field_validator("items")
    @classmethod
    def _not_empty(cls, v):
        if not v:
            raise PydanticCustomError("empty_cart", "Cart cannot be empty")
        return v
