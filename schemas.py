"""
Database Schemas

MongoDB collection schemas as Pydantic models.
Model name lowercased is the collection name.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: str = Field(..., min_length=1, description="Email address, unique, lower-cased")
    password_hash: str = Field(..., description="BCrypt hashed password")
    phone: Optional[str] = Field(None, description="Contact number")


class Product(BaseModel):
    id: int = Field(..., description="Catalog number")
    name: str
    desc: Optional[str] = None
    price: float = Field(..., ge=0)
    category: Optional[str] = None
    material: Optional[str] = None
    img: Optional[str] = Field(None, description="Image path or URL")


class OrderItem(BaseModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, description="Unit price at purchase time")
    quantity: int = Field(..., ge=1, validation_alias=AliasChoices("quantity", "qty"))


class ShippingInfo(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = Field(..., min_length=1)
    email: Optional[str] = Field(None, description="Where the confirmation is sent")
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pincode: str = Field(..., min_length=1, validation_alias=AliasChoices("pincode", "postal_code", "postalCode"))

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
        return v or None


class Order(BaseModel):
    user: str = Field(..., description="ID of the user placing the order")
    items: List[OrderItem] = Field(..., min_length=1)
    total: float = Field(..., gt=0)
    shipping: ShippingInfo
    payment_method: Optional[str] = None
    payment_id: Optional[str] = Field(None, description="Gateway payment id reported by the client")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
