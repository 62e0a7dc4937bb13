"""Pydantic schemas for store service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from services.store_service.models import (
    CheckoutStatus,
    DeliveryStatus,
    OrderStatus,
    PaymentMethod,
    RefundStatus,
    ReturnStatus,
)

# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemAdd(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(1, ge=1, le=100)


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: uuid.UUID
    quantity: int
    added_at: datetime


# ============================================================================
# ADDRESS SCHEMAS
# ============================================================================


class AddressFields(BaseModel):
    address_line1: str = Field(..., min_length=1, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    landmark: Optional[str] = Field(None, max_length=255)
    pincode: str = Field(..., pattern=r"^\d{6}$")
    phone_number: str = Field(..., min_length=10, max_length=15)


class BindAddressRequest(BaseModel):
    """Either pick a saved address or supply a new one."""

    address_id: Optional[uuid.UUID] = None
    new_address: Optional[AddressFields] = None

    @model_validator(mode="after")
    def _exactly_one(self):
        if (self.address_id is None) == (self.new_address is None):
            raise ValueError("Provide exactly one of address_id or new_address")
        return self


class ShippingAddressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    address_id: uuid.UUID
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    landmark: Optional[str] = None
    pincode: str
    phone_number: str


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class CheckoutItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: uuid.UUID
    product_name: str
    quantity: int
    price: Decimal
    subtotal: Decimal


class CheckoutSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    status: CheckoutStatus
    total_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    item_count: int
    coupon_code: Optional[str] = None
    coupon_applied: bool
    shipping_address_id: Optional[uuid.UUID] = None
    items: list[CheckoutItemResponse] = []
    created_at: datetime


class CheckoutSummaryResponse(CheckoutSessionResponse):
    shipping_address: Optional[ShippingAddressResponse] = None


class ApplyCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class PlaceOrderRequest(BaseModel):
    session_id: uuid.UUID
    payment_method: PaymentMethod = PaymentMethod.ONLINE


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: uuid.UUID
    product_name: str
    quantity: int
    price: Decimal
    subtotal: Decimal


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    checkout_session_id: uuid.UUID
    total_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    coupon_code: Optional[str] = None
    coupon_applied: bool
    payment_method: PaymentMethod
    order_status: OrderStatus
    delivery_status: DeliveryStatus
    refund_status: RefundStatus
    shipping_address_id: uuid.UUID
    has_return_request: bool
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: list[OrderItemResponse] = []
    created_at: datetime


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class DeliveryStatusUpdate(BaseModel):
    delivery_status: DeliveryStatus


# ============================================================================
# COUPON SCHEMAS
# ============================================================================


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    discount_percentage: Decimal = Field(..., gt=0, le=100)
    min_order_amount: Decimal = Field(Decimal("0"), ge=0)
    expires_at: datetime
    is_active: bool = True


class CouponUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    discount_percentage: Optional[Decimal] = Field(None, gt=0, le=100)
    min_order_amount: Optional[Decimal] = Field(None, ge=0)
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None


class CouponResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    discount_percentage: Decimal
    min_order_amount: Decimal
    is_active: bool
    expires_at: datetime
    created_at: datetime


class CouponListResponse(BaseModel):
    items: list[CouponResponse]
    total: int


class CouponUsageResponse(BaseModel):
    coupon_id: uuid.UUID
    in_use: bool


# ============================================================================
# RETURN SCHEMAS
# ============================================================================


class ReturnRequestCreate(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class ReturnReview(BaseModel):
    approve: bool


class ReturnResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    user_id: str
    reason: str
    status: ReturnStatus
    is_approved: bool
    requested_date: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    order_returned_to_seller_at: Optional[datetime] = None
    is_stock_updated: bool
    refund_initiated: bool
    refund_amount: Optional[Decimal] = None
    refund_completed: bool
    refund_completed_at: Optional[datetime] = None


class ReturnListResponse(BaseModel):
    items: list[ReturnResponse]
    total: int
