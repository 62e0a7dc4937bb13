"""Store Service models package."""

from services.store_service.models.catalog import InventoryMovement, Product
from services.store_service.models.commerce import (
    CartItem,
    CheckoutItem,
    CheckoutSession,
    Order,
    OrderItem,
    ShippingAddress,
    UserAddress,
)
from services.store_service.models.coupons import Coupon
from services.store_service.models.enums import (
    CANCELLABLE_ORDER_STATUSES,
    CHECKOUT_TRANSITIONS,
    ORDER_TRANSITIONS,
    RETURN_TRANSITIONS,
    RETURNABLE_ORDER_STATUSES,
    CheckoutStatus,
    DeliveryStatus,
    InventoryMovementType,
    OrderStatus,
    PaymentMethod,
    RefundStatus,
    ReturnStatus,
)
from services.store_service.models.returns import ReturnRequest

__all__ = [
    "CANCELLABLE_ORDER_STATUSES",
    "CHECKOUT_TRANSITIONS",
    "ORDER_TRANSITIONS",
    "RETURN_TRANSITIONS",
    "RETURNABLE_ORDER_STATUSES",
    "CartItem",
    "CheckoutItem",
    "CheckoutSession",
    "CheckoutStatus",
    "Coupon",
    "DeliveryStatus",
    "InventoryMovement",
    "InventoryMovementType",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "Product",
    "RefundStatus",
    "ReturnRequest",
    "ReturnStatus",
    "ShippingAddress",
    "UserAddress",
]
