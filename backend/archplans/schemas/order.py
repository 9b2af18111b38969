"""
结算与订单Schema
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, model_validator

from archplans.models.enums import ItemType, LicenseType, OrderStatus, PaymentStatus
from archplans.schemas.license import LicenseResponse


class CheckoutItem(BaseModel):
    """购物车条目：plan_id 与 image_id 二选一"""
    plan_id: Optional[int] = None
    image_id: Optional[int] = None
    license_type: LicenseType = LicenseType.STANDARD

    @model_validator(mode="after")
    def check_target(self):
        if (self.plan_id is None) == (self.image_id is None):
            raise ValueError("plan_id 与 image_id 必须且只能提供一个")
        return self


class BillingInfo(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, max_length=200)
    street: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=50)
    state: Optional[str] = Field(None, max_length=50)
    zip: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, min_length=2, max_length=2)


class CheckoutRequest(BaseModel):
    items: List[CheckoutItem] = Field(..., min_length=1, max_length=20)
    billing: Optional[BillingInfo] = None
    return_url: Optional[str] = None


class CheckoutResponse(BaseModel):
    order_id: int
    order_number: str
    is_free: bool = False
    session_id: Optional[str] = None
    session_url: Optional[str] = None
    amount: float
    currency: str


class OrderItemResponse(BaseModel):
    id: int
    item_type: ItemType
    plan_id: Optional[int] = None
    image_id: Optional[int] = None
    license_type: LicenseType
    quantity: int
    unit_price: float
    total_price: float
    item_title: str
    item_description: Optional[str] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    order_number: str
    user_id: int
    status: OrderStatus
    payment_status: PaymentStatus
    subtotal: float
    tax_amount: float
    total_amount: float
    currency: str
    billing_email: str
    billing_name: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderDetail(OrderResponse):
    billing_street: Optional[str] = None
    billing_city: Optional[str] = None
    billing_state: Optional[str] = None
    billing_zip: Optional[str] = None
    billing_country: Optional[str] = None
    items: List[OrderItemResponse] = []
    licenses: List[LicenseResponse] = []


class AdminOrderDetail(OrderDetail):
    payment_session_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    customer_ip: Optional[str] = None
    internal_notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    internal_notes: Optional[str] = Field(None, max_length=1000)
