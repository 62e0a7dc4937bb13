"""Store commerce models: cart, addresses, checkout sessions and orders."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.store_service.models.enums import (
    CheckoutStatus,
    DeliveryStatus,
    OrderStatus,
    PaymentMethod,
    RefundStatus,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# CART
# ============================================================================


class CartItem(Base):
    """A user's cart line. One row per (user, product)."""

    __tablename__ = "store_cart_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_products.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_store_cart_items_user_product"),
        CheckConstraint("quantity > 0", name="quantity_positive"),
    )


# ============================================================================
# ADDRESSES
# ============================================================================


class UserAddress(Base):
    """Address book entry owned by a user."""

    __tablename__ = "store_user_addresses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    address_line1: Mapped[str] = mapped_column(String(255), nullable=False)
    address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    landmark: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    pincode: Mapped[str] = mapped_column(String(10), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class ShippingAddress(Base):
    """Snapshot of a UserAddress taken at checkout; one per (user, address)."""

    __tablename__ = "store_shipping_addresses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    address_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_user_addresses.id"), nullable=False
    )
    address_line1: Mapped[str] = mapped_column(String(255), nullable=False)
    address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    landmark: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    pincode: Mapped[str] = mapped_column(String(10), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "address_id", name="uq_store_shipping_addresses_user_address"
        ),
    )


# ============================================================================
# CHECKOUT
# ============================================================================


class CheckoutSession(Base):
    """Staging area between a mutable cart and an immutable order."""

    __tablename__ = "store_checkout_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    status: Mapped[CheckoutStatus] = mapped_column(
        SAEnum(
            CheckoutStatus,
            values_callable=enum_values,
            name="store_checkout_status_enum",
        ),
        default=CheckoutStatus.PENDING,
        nullable=False,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    final_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    item_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    coupon_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    coupon_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    shipping_address_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("store_shipping_addresses.id"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        # At most one pending session per user
        Index(
            "uq_store_checkout_sessions_user_pending",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        CheckConstraint(
            "(coupon_applied AND coupon_code IS NOT NULL) "
            "OR (NOT coupon_applied AND coupon_code IS NULL)",
            name="coupon_fields_consistent",
        ),
        CheckConstraint(
            "discount_amount = 0 OR coupon_applied", name="discount_requires_coupon"
        ),
    )

    items: Mapped[list["CheckoutItem"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CheckoutItem.product_id",
    )

    def __repr__(self):
        return f"<CheckoutSession {self.id} status={self.status}>"


class CheckoutItem(Base):
    """Cart line frozen into a checkout session. Never updated."""

    __tablename__ = "store_checkout_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_checkout_sessions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_products.id"), nullable=False
    )
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (CheckConstraint("quantity > 0", name="quantity_positive"),)

    session: Mapped["CheckoutSession"] = relationship(back_populates="items")


# ============================================================================
# ORDERS
# ============================================================================


class Order(Base):
    """Order created from exactly one completed checkout session."""

    __tablename__ = "store_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    checkout_session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_checkout_sessions.id"), unique=True, nullable=False
    )

    # Pricing, frozen from the checkout session
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0.00"), nullable=False
    )
    final_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    coupon_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    coupon_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            values_callable=enum_values,
            name="store_payment_method_enum",
        ),
        nullable=False,
    )
    order_status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            values_callable=enum_values,
            name="store_order_status_enum",
        ),
        default=OrderStatus.PENDING_PAYMENT,
        nullable=False,
    )
    delivery_status: Mapped[DeliveryStatus] = mapped_column(
        SAEnum(
            DeliveryStatus,
            values_callable=enum_values,
            name="store_delivery_status_enum",
        ),
        default=DeliveryStatus.PENDING,
        nullable=False,
    )
    refund_status: Mapped[RefundStatus] = mapped_column(
        SAEnum(
            RefundStatus,
            values_callable=enum_values,
            name="store_refund_status_enum",
        ),
        default=RefundStatus.NOT_APPLICABLE,
        nullable=False,
    )

    shipping_address_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_shipping_addresses.id"), nullable=False
    )
    has_return_request: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_store_orders_status_created", "order_status", "created_at"),
    )

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.product_id",
    )

    def __repr__(self):
        return f"<Order {self.id} status={self.order_status}>"


class OrderItem(Base):
    """Order line; price and subtotal copied from the checkout snapshot."""

    __tablename__ = "store_order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_orders.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_products.id"), nullable=False
    )
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped["Order"] = relationship(back_populates="items")
