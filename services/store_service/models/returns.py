"""Store return request model."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.store_service.models.enums import ReturnStatus, enum_values
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class ReturnRequest(Base):
    """Post-delivery return, walked through review, restock and refund."""

    __tablename__ = "store_return_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("store_orders.id"), unique=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[ReturnStatus] = mapped_column(
        SAEnum(
            ReturnStatus,
            values_callable=enum_values,
            name="store_return_status_enum",
        ),
        default=ReturnStatus.REQUESTED,
        nullable=False,
    )

    # Review (exactly one of approved_at / rejected_at, set once)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    requested_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejected_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Physical return and restock
    order_returned_to_seller_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_stock_updated: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # Refund
    refund_initiated: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    refund_completed: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    refund_completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "approved_at IS NULL OR rejected_at IS NULL",
            name="review_outcome_exclusive",
        ),
    )

    def __repr__(self):
        return f"<ReturnRequest {self.id} status={self.status}>"
