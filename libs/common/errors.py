"""Domain error taxonomy shared by the store, payments and wallet services.

Every error carries a stable ``code``, an HTTP ``status_code`` and a
``retryable`` flag so callers can tell an external hiccup (worth retrying)
from a validation or conflict failure (not worth retrying).
"""

import uuid
from typing import Optional


class ServiceError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "internal_error"
    retryable: bool = False
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class ValidationFailed(ServiceError):
    status_code = 400
    code = "validation_failed"
    default_message = "Validation failed"


class UnauthorizedError(ServiceError):
    status_code = 403
    code = "unauthorized"
    default_message = "Not allowed to access this resource"


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class ConflictError(ServiceError):
    status_code = 409
    code = "conflict"
    default_message = "Conflicting state"


class ExternalServiceError(ServiceError):
    status_code = 502
    code = "external_error"
    retryable = True
    default_message = "Upstream service failed"


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class EmptyCart(ValidationFailed):
    code = "empty_cart"
    default_message = "Cart is empty"


class EmptyCheckout(ValidationFailed):
    code = "empty_checkout"
    default_message = "Checkout session has no items"


class ShippingAddressRequired(ValidationFailed):
    code = "shipping_address_required"
    default_message = "A shipping address must be bound before placing the order"


class CODLimitExceeded(ValidationFailed):
    code = "cod_limit_exceeded"
    default_message = "Order total exceeds the cash-on-delivery limit"


class CheckoutSessionNotFound(NotFoundError):
    code = "checkout_session_not_found"
    default_message = "Checkout session not found"


class AddressNotFound(NotFoundError):
    code = "address_not_found"
    default_message = "Address not found"


class SessionNotPending(ConflictError):
    code = "session_not_pending"
    default_message = "Checkout session is no longer pending"


class InsufficientStock(ConflictError):
    code = "insufficient_stock"

    def __init__(
        self,
        product_id: uuid.UUID,
        requested: int,
        available: int,
        product_name: Optional[str] = None,
    ):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        label = product_name or str(product_id)
        super().__init__(
            f"Insufficient stock for product {label}: "
            f"requested {requested}, available {available}"
        )


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------


class CouponNotFound(NotFoundError):
    code = "coupon_not_found"
    default_message = "Coupon not found"


class CouponInactive(ValidationFailed):
    code = "coupon_inactive"
    default_message = "Coupon is not active"


class CouponExpired(ValidationFailed):
    code = "coupon_expired"
    default_message = "Coupon has expired"


class MinOrderNotMet(ValidationFailed):
    code = "min_order_not_met"
    default_message = "Order total is below the coupon minimum"


class NoCouponApplied(ValidationFailed):
    code = "no_coupon_applied"
    default_message = "No coupon is applied to this checkout"


class DuplicateCouponCode(ConflictError):
    code = "duplicate_coupon_code"
    default_message = "A coupon with this code already exists"


class CouponInUse(ConflictError):
    code = "coupon_in_use"
    default_message = "Coupon is referenced by a recent checkout"


class CouponAlreadyDeleted(ConflictError):
    code = "coupon_already_deleted"
    default_message = "Coupon is already deleted"


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class OrderNotFound(NotFoundError):
    code = "order_not_found"
    default_message = "Order not found"


class InvalidStatusTransition(ConflictError):
    code = "invalid_status_transition"

    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} cannot move from '{current}' to '{target}'")


class OrderNotCancellable(ConflictError):
    code = "order_not_cancellable"
    default_message = "Order can no longer be cancelled"


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class PaymentNotFound(NotFoundError):
    code = "payment_not_found"
    default_message = "Payment not found"


class PaymentNotPayable(ConflictError):
    code = "payment_not_payable"
    default_message = "Payment can no longer be completed"


class NotRefundable(ConflictError):
    code = "not_refundable"
    default_message = "Payment is not in a refundable state"


class GatewayError(ExternalServiceError):
    code = "gateway_error"
    default_message = "Payment gateway request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        self.gateway_status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class GatewayTimeout(GatewayError):
    status_code = 504
    code = "gateway_timeout"
    default_message = "Payment gateway timed out"


class SignatureMismatch(ExternalServiceError):
    status_code = 400
    code = "signature_mismatch"
    retryable = False
    default_message = "Payment signature verification failed"


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------


class WalletNotFound(NotFoundError):
    code = "wallet_not_found"
    default_message = "Wallet not found"


class InsufficientWalletBalance(ValidationFailed):
    code = "insufficient_wallet_balance"
    default_message = "Wallet balance is too low for this debit"


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------


class ReturnNotFound(NotFoundError):
    code = "return_not_found"
    default_message = "Return request not found"


class ReturnNotAllowed(ValidationFailed):
    code = "return_not_allowed"
    default_message = "Order is not eligible for return"


class ReturnAlreadyRequested(ConflictError):
    code = "return_already_requested"
    default_message = "A return request already exists for this order"


class ReturnAlreadyProcessed(ConflictError):
    code = "return_already_processed"
    default_message = "Return request has already been reviewed"
