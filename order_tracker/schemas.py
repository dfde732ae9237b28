from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .models import OrderStatus, DEFAULT_STATUS
from .numbering import DEFAULT_CUSTOMER_PREFIX, DEFAULT_ORDER_PREFIX, DEFAULT_START_NUMBER, DEFAULT_WIDTH
from .status_history import to_iso


class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
        use_enum_values = True


# --- Auth ---

class LoginIn(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserOut(CamelModel):
    id: int
    username: str


class AdminLoginOut(CamelModel):
    token: str
    user: UserOut


class CustomerLoginIn(CamelModel):
    # ``identifier`` may hold an account number or a phone number.
    identifier: Optional[str] = None
    account_number: Optional[str] = None
    phone_number: Optional[str] = None
    password: str = Field(min_length=1)

    @model_validator(mode="after")
    def require_lookup(self):
        if not self.lookup_value:
            raise ValueError("يرجى إدخال رقم الحساب أو رقم الهاتف")
        return self

    @property
    def lookup_value(self) -> Optional[str]:
        for candidate in (self.identifier, self.account_number, self.phone_number):
            if candidate and candidate.strip():
                return candidate.strip()
        return None


class ChangePasswordIn(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class MessageOut(CamelModel):
    message: str


# --- Customers ---

class CustomerOut(CamelModel):
    id: int
    account_number: str
    name: str
    phone_number: str


class CustomerLoginOut(CamelModel):
    token: str
    customer: CustomerOut


class CustomerCreate(CamelModel):
    account_number: Optional[str] = Field(default=None, max_length=50)
    name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1, max_length=20)
    password: str = Field(min_length=6)

    @field_validator("account_number", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CustomerUpdate(CamelModel):
    account_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    name: Optional[str] = Field(default=None, min_length=1)
    phone_number: Optional[str] = Field(default=None, min_length=1, max_length=20)
    password: Optional[str] = Field(default=None, min_length=6)


# --- Orders ---

class OrderCreate(CamelModel):
    order_number: Optional[str] = Field(default=None, max_length=50)
    customer_id: Optional[int] = None
    customer_name: str = Field(min_length=1)
    phone_number: str = Field(min_length=1, max_length=20)
    order_status: OrderStatus = DEFAULT_STATUS
    estimated_delivery_date: Optional[str] = None
    admin_notes: Optional[str] = None
    order_value: Optional[Decimal] = Field(default=None, ge=0)
    items_count: Optional[int] = Field(default=None, ge=0)
    shipping_cost: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator(
        "order_number", "estimated_delivery_date", "admin_notes", "order_value", "shipping_cost",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class OrderUpdate(CamelModel):
    order_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    customer_id: Optional[int] = None
    customer_name: Optional[str] = Field(default=None, min_length=1)
    phone_number: Optional[str] = Field(default=None, min_length=1, max_length=20)
    order_status: Optional[OrderStatus] = None
    estimated_delivery_date: Optional[str] = None
    admin_notes: Optional[str] = None
    order_value: Optional[Decimal] = Field(default=None, ge=0)
    items_count: Optional[int] = Field(default=None, ge=0)
    shipping_cost: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("order_value", "shipping_cost", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class OrderOut(CamelModel):
    id: int
    order_number: str
    customer_id: Optional[int] = None
    customer_name: str
    phone_number: str
    order_status: str
    estimated_delivery_date: Optional[str] = None
    admin_notes: Optional[str] = None
    order_value: Optional[Decimal] = None
    items_count: Optional[int] = None
    shipping_cost: Optional[Decimal] = None
    status_timestamps: Dict[str, str] = {}
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def serialize_dt(self, value: datetime) -> str:
        return to_iso(value)


def order_payload(order) -> dict:
    """JSON-ready camelCase dict, as sent over the realtime channel."""
    return OrderOut.model_validate(order).model_dump(mode="json", by_alias=True)


# --- Settings ---

class PublicSettingsOut(CamelModel):
    company_name: str = ""
    company_logo: str = ""
    company_address: str = ""
    company_phone: str = ""
    company_email: str = ""
    company_website: str = ""


class SettingsOut(PublicSettingsOut):
    order_prefix: str = DEFAULT_ORDER_PREFIX
    order_start_number: int = DEFAULT_START_NUMBER
    order_number_width: int = DEFAULT_WIDTH
    customer_prefix: str = DEFAULT_CUSTOMER_PREFIX
    customer_start_number: int = DEFAULT_START_NUMBER
    customer_number_width: int = DEFAULT_WIDTH

    @classmethod
    def from_row(cls, row) -> "SettingsOut":
        if row is None:
            return cls()
        values = {
            name: getattr(row, name)
            for name in cls.model_fields
            if getattr(row, name, None) not in (None, "")
        }
        return cls(**values)


class SettingsUpdate(CamelModel):
    company_name: Optional[str] = None
    company_logo: Optional[str] = None
    company_address: Optional[str] = None
    company_phone: Optional[str] = None
    company_email: Optional[str] = None
    company_website: Optional[str] = None
    order_prefix: Optional[str] = Field(default=None, min_length=1, max_length=20)
    order_start_number: Optional[int] = Field(default=None, ge=1)
    order_number_width: Optional[int] = Field(default=None, ge=1, le=12)
    customer_prefix: Optional[str] = Field(default=None, min_length=1, max_length=20)
    customer_start_number: Optional[int] = Field(default=None, ge=1)
    customer_number_width: Optional[int] = Field(default=None, ge=1, le=12)
