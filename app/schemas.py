from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models import PaymentCategory, ProgressType, RequestType


class LoginIn(BaseModel):
    email: str
    password: str


class OrderItemIn(BaseModel):
    item_name: str
    quantity: int = Field(ge=0)
    unit_price: Decimal = Field(ge=0)
    specification: str | None = None
    remark: str | None = None
    link: str | None = None


class PurchaseRequestIn(BaseModel):
    vendor_id: int
    contact_id: int | None = None
    request_date: date | None = None
    delivery_request_date: date | None = None
    progress_type: ProgressType = ProgressType.NORMAL
    payment_category: PaymentCategory = PaymentCategory.ORDER
    request_type: RequestType = RequestType.RAW_MATERIAL
    currency: str = 'KRW'
    project_vendor: str | None = None
    sales_order_number: str | None = None
    project_item: str | None = None
    order_number: str | None = None
    items: list[OrderItemIn] = Field(default_factory=list)


class LineEditIn(BaseModel):
    line_number: int
    item_name: str | None = None
    specification: str | None = None
    quantity: int | None = None
    unit_price: Decimal | None = None
    remark: str | None = None
    link: str | None = None


class OrderEditIn(BaseModel):
    lines: list[LineEditIn] = Field(default_factory=list)
    delivery_request_date: date | None = None
    vendor_id: int | None = None
    contact_id: int | None = None


class DeleteIn(BaseModel):
    confirmed: bool = False


class VendorIn(BaseModel):
    name: str
    phone: str | None = None
    fax: str | None = None
    payment_schedule: str | None = None


class VendorUpdateIn(BaseModel):
    name: str | None = None
    phone: str | None = None
    fax: str | None = None
    payment_schedule: str | None = None
    active: bool | None = None


class ContactIn(BaseModel):
    contact_name: str
    email: str | None = None
    phone: str | None = None
    position: str | None = None
