"""Enum definitions and status transition tables for store service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class InventoryMovementType(str, enum.Enum):
    SALE = "sale"
    RETURN = "return"
    CANCELLATION = "cancellation"
    EXPIRY = "expiry"
    ADJUSTMENT = "adjustment"


class CheckoutStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    DELETED = "deleted"


class PaymentMethod(str, enum.Enum):
    ONLINE = "online"
    COD = "cod"


class OrderStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"  # COD orders, awaiting fulfilment
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RETURN_APPROVED = "return_approved"
    REFUNDED = "refunded"


class DeliveryStatus(str, enum.Enum):
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED_DELIVERY_ATTEMPT = "failed_delivery_attempt"
    RETURNED_TO_SENDER = "returned_to_sender"


class RefundStatus(str, enum.Enum):
    NOT_APPLICABLE = "not_applicable"
    INITIATED = "initiated"
    COMPLETED = "completed"


class ReturnStatus(str, enum.Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED_TO_SELLER = "returned_to_seller"
    STOCK_RESTOCKED = "stock_restocked"
    REFUND_INITIATED = "refund_initiated"
    REFUND_COMPLETED = "refund_completed"


# ============================================================================
# TRANSITIONS (current -> allowed targets; terminal states map to nothing)
# ============================================================================

CHECKOUT_TRANSITIONS: dict[CheckoutStatus, frozenset] = {
    CheckoutStatus.PENDING: frozenset({CheckoutStatus.COMPLETED, CheckoutStatus.DELETED}),
    CheckoutStatus.COMPLETED: frozenset(),
    CheckoutStatus.DELETED: frozenset(),
}

ORDER_TRANSITIONS: dict[OrderStatus, frozenset] = {
    OrderStatus.PENDING_PAYMENT: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.CANCELLED}
    ),
    OrderStatus.CONFIRMED: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(
        {OrderStatus.COMPLETED, OrderStatus.RETURN_APPROVED}
    ),
    OrderStatus.COMPLETED: frozenset({OrderStatus.RETURN_APPROVED}),
    OrderStatus.RETURN_APPROVED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

CANCELLABLE_ORDER_STATUSES = frozenset(
    {OrderStatus.PENDING_PAYMENT, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}
)
RETURNABLE_ORDER_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.COMPLETED})

RETURN_TRANSITIONS: dict[ReturnStatus, frozenset] = {
    ReturnStatus.REQUESTED: frozenset({ReturnStatus.APPROVED, ReturnStatus.REJECTED}),
    ReturnStatus.APPROVED: frozenset({ReturnStatus.RETURNED_TO_SELLER}),
    ReturnStatus.REJECTED: frozenset(),
    ReturnStatus.RETURNED_TO_SELLER: frozenset({ReturnStatus.STOCK_RESTOCKED}),
    ReturnStatus.STOCK_RESTOCKED: frozenset({ReturnStatus.REFUND_INITIATED}),
    ReturnStatus.REFUND_INITIATED: frozenset({ReturnStatus.REFUND_COMPLETED}),
    ReturnStatus.REFUND_COMPLETED: frozenset(),
}
