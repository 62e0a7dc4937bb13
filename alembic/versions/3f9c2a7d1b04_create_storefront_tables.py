"""create_storefront_tables

Revision ID: 3f9c2a7d1b04
Revises:
Create Date: 2026-10-19 09:12:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2a7d1b04'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUM_NAMES = (
    'store_inventory_movement_type_enum',
    'store_checkout_status_enum',
    'store_payment_method_enum',
    'store_order_status_enum',
    'store_delivery_status_enum',
    'store_refund_status_enum',
    'store_return_status_enum',
    'payment_method_enum',
    'payment_status_enum',
    'wallet_transaction_type_enum',
    'wallet_transaction_direction_enum',
)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _address_columns():
    return [
        sa.Column('address_line1', sa.String(length=255), nullable=False),
        sa.Column('address_line2', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=100), nullable=False),
        sa.Column('landmark', sa.String(length=255), nullable=True),
        sa.Column('pincode', sa.String(length=10), nullable=False),
        sa.Column('phone_number', sa.String(length=20), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema - store, payments and wallet tables."""

    # Catalog
    op.create_table(
        'store_products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('stock_quantity >= 0', name=op.f('ck_store_products_stock_non_negative')),
        sa.CheckConstraint('price >= 0', name=op.f('ck_store_products_price_non_negative')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_store_products')),
    )
    op.create_table(
        'store_inventory_movements',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column(
            'movement_type',
            sa.Enum('sale', 'return', 'cancellation', 'expiry', 'adjustment', name='store_inventory_movement_type_enum'),
            nullable=False,
        ),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('quantity_after', sa.Integer(), nullable=False),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_id', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], name=op.f('fk_store_inventory_movements_product_id_store_products')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_store_inventory_movements')),
    )
    op.create_index(op.f('ix_store_inventory_movements_product_id'), 'store_inventory_movements', ['product_id'], unique=False)

    # Cart and addresses
    op.create_table(
        'store_cart_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity > 0', name=op.f('ck_store_cart_items_quantity_positive')),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], name=op.f('fk_store_cart_items_product_id_store_products')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_store_cart_items')),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_store_cart_items_user_product'),
    )
    op.create_index(op.f('ix_store_cart_items_user_id'), 'store_cart_items', ['user_id'], unique=False)

    op.create_table(
        'store_user_addresses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        *_address_columns(),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_store_user_addresses')),
    )
    op.create_index(op.f('ix_store_user_addresses_user_id'), 'store_user_addresses', ['user_id'], unique=False)

    op.create_table(
        'store_shipping_addresses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('address_id', sa.Uuid(), nullable=False),
        *_address_columns(),
        *_timestamps(),
        sa.ForeignKeyConstraint(['address_id'], ['store_user_addresses.id'], name=op.f('fk_store_shipping_addresses_address_id_store_user_addresses')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_store_shipping_addresses')),
        sa.UniqueConstraint('user_id', 'address_id', name='uq_store_shipping_addresses_user_address'),
    )
    op.create_index(op.f('ix_store_shipping_addresses_user_id'), 'store_shipping_addresses', ['user_id'], unique=False)

    # Coupons
    op.create_table(
        'store_coupons',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('discount_percentage', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('min_order_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('discount_percentage > 0 AND discount_percentage <= 100', name=op.f('ck_store_coupons_discount_percentage_range')),
        sa.CheckConstraint('min_order_amount >= 0', name=op.f('ck_store_coupons_min_order_non_negative')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_store_coupons')),
    )
    op.create_index(op.f('ix_store_coupons_code'), 'store_coupons', ['code'], unique=True)

    # Checkout
    op.create_table(
        'store_checkout_sessions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('status', sa.Enum('pending', 'completed', 'deleted', name='store_checkout_status_enum'), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('final_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('item_count', sa.Integer(), nullable=False),
        sa.Column('coupon_code', sa.String(length=50), nullable=True),
        sa.Column('coupon_applied', sa.Boolean(), nullable=False),
        sa.Column('shipping_address_id', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            '(coupon_applied AND coupon_code IS NOT NULL) OR (NOT coupon_applied AND coupon_code IS NULL)',
            name=op.f('ck_store_checkout_sessions_coupon_fields_consistent'),
        ),
        sa.CheckConstraint('discount_amount = 0 OR coupon_applied', name=op.f('ck_store_checkout_sessions_discount_requires_coupon')),
        sa.ForeignKeyConstraint(['shipping_address_id'], ['store_shipping_addresses.id'], name=op.f('fk_store_checkout_sessions_shipping_address_id_store_shipping_addresses')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_store_checkout_sessions')),
    )
    op.create_index(op.f('ix_store_checkout_sessions_user_id'), 'store_checkout_sessions', ['user_id'], unique=False)
    op.create_index(
        'uq_store_checkout_sessions_user_pending',
        'store_checkout_sessions',
        ['user_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'store_checkout_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('session_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.CheckConstraint('quantity > 0', name=op.f('ck_store_checkout_items_quantity_positive')),
        sa.ForeignKeyConstraint(['session_id'], ['store_checkout_sessions.id'], name=op.f('fk_store_checkout_items_session_id_store_checkout_sessions'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], name=op.f('fk_store_checkout_items_product_id_store_products')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_store_checkout_items')),
    )
    op.create_index(op.f('ix_store_checkout_items_session_id'), 'store_checkout_items', ['session_id'], unique=False)

    # Orders
    op.create_table(
        'store_orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('checkout_session_id', sa.Uuid(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('final_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('coupon_code', sa.String(length=50), nullable=True),
        sa.Column('coupon_applied', sa.Boolean(), nullable=False),
        sa.Column('payment_method', sa.Enum('online', 'cod', name='store_payment_method_enum'), nullable=False),
        sa.Column(
            'order_status',
            sa.Enum(
                'pending_payment', 'confirmed', 'processing', 'shipped', 'delivered',
                'completed', 'cancelled', 'return_approved', 'refunded',
                name='store_order_status_enum',
            ),
            nullable=False,
        ),
        sa.Column(
            'delivery_status',
            sa.Enum(
                'pending', 'in_transit', 'out_for_delivery', 'delivered',
                'failed_delivery_attempt', 'returned_to_sender',
                name='store_delivery_status_enum',
            ),
            nullable=False,
        ),
        sa.Column(
            'refund_status',
            sa.Enum('not_applicable', 'initiated', 'completed', name='store_refund_status_enum'),
            nullable=False,
        ),
        sa.Column('shipping_address_id', sa.Uuid(), nullable=False),
        sa.Column('has_return_request', sa.Boolean(), nullable=False),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['checkout_session_id'], ['store_checkout_sessions.id'], name=op.f('fk_store_orders_checkout_session_id_store_checkout_sessions')),
        sa.ForeignKeyConstraint(['shipping_address_id'], ['store_shipping_addresses.id'], name=op.f('fk_store_orders_shipping_address_id_store_shipping_addresses')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_store_orders')),
        sa.UniqueConstraint('checkout_session_id', name=op.f('uq_store_orders_checkout_session_id')),
    )
    op.create_index(op.f('ix_store_orders_user_id'), 'store_orders', ['user_id'], unique=False)
    op.create_index('ix_store_orders_status_created', 'store_orders', ['order_status', 'created_at'], unique=False)

    op.create_table(
        'store_order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['store_orders.id'], name=op.f('fk_store_order_items_order_id_store_orders'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], name=op.f('fk_store_order_items_product_id_store_products')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_store_order_items')),
    )
    op.create_index(op.f('ix_store_order_items_order_id'), 'store_order_items', ['order_id'], unique=False)

    # Returns
    op.create_table(
        'store_return_requests',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column(
            'status',
            sa.Enum(
                'requested', 'approved', 'rejected', 'returned_to_seller',
                'stock_restocked', 'refund_initiated', 'refund_completed',
                name='store_return_status_enum',
            ),
            nullable=False,
        ),
        sa.Column('is_approved', sa.Boolean(), nullable=False),
        sa.Column('requested_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('order_returned_to_seller_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_stock_updated', sa.Boolean(), nullable=False),
        sa.Column('refund_initiated', sa.Boolean(), nullable=False),
        sa.Column('refund_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('refund_completed', sa.Boolean(), nullable=False),
        sa.Column('refund_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('approved_at IS NULL OR rejected_at IS NULL', name=op.f('ck_store_return_requests_review_outcome_exclusive')),
        sa.ForeignKeyConstraint(['order_id'], ['store_orders.id'], name=op.f('fk_store_return_requests_order_id_store_orders')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_store_return_requests')),
        sa.UniqueConstraint('order_id', name=op.f('uq_store_return_requests_order_id')),
    )
    op.create_index(op.f('ix_store_return_requests_user_id'), 'store_return_requests', ['user_id'], unique=False)

    # Payments
    op.create_table(
        'payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('payment_method', sa.Enum('online', 'cod', name='payment_method_enum'), nullable=False),
        sa.Column('status', sa.Enum('created', 'paid', 'failed', 'refunded', name='payment_status_enum'), nullable=False),
        sa.Column('gateway_order_id', sa.String(length=64), nullable=True),
        sa.Column('gateway_payment_id', sa.String(length=64), nullable=True),
        sa.Column('gateway_signature', sa.String(length=128), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name=op.f('ck_payments_amount_positive')),
        sa.ForeignKeyConstraint(['order_id'], ['store_orders.id'], name=op.f('fk_payments_order_id_store_orders')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_payments')),
    )
    op.create_index(op.f('ix_payments_order_id'), 'payments', ['order_id'], unique=False)
    op.create_index(op.f('ix_payments_user_id'), 'payments', ['user_id'], unique=False)
    op.create_index(op.f('ix_payments_gateway_order_id'), 'payments', ['gateway_order_id'], unique=True)

    # Wallet
    op.create_table(
        'wallets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('balance', sa.Numeric(precision=12, scale=2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('balance >= 0', name=op.f('ck_wallets_balance_non_negative')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_wallets')),
    )
    op.create_index(op.f('ix_wallets_user_id'), 'wallets', ['user_id'], unique=True)

    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('wallet_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('idempotency_key', sa.String(), nullable=False),
        sa.Column(
            'transaction_type',
            sa.Enum('refund', 'adjustment', 'purchase', name='wallet_transaction_type_enum'),
            nullable=False,
        ),
        sa.Column(
            'direction',
            sa.Enum('credit', 'debit', name='wallet_transaction_direction_enum'),
            nullable=False,
        ),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('balance_before', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('balance_after', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('description', sa.String(), nullable=False),
        sa.Column('reference_type', sa.String(), nullable=True),
        sa.Column('reference_id', sa.String(), nullable=True),
        sa.Column('initiated_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount <> 0', name=op.f('ck_wallet_transactions_amount_non_zero')),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], name=op.f('fk_wallet_transactions_wallet_id_wallets')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_wallet_transactions')),
    )
    op.create_index(op.f('ix_wallet_transactions_wallet_id'), 'wallet_transactions', ['wallet_id'], unique=False)
    op.create_index(op.f('ix_wallet_transactions_user_id'), 'wallet_transactions', ['user_id'], unique=False)
    op.create_index(op.f('ix_wallet_transactions_idempotency_key'), 'wallet_transactions', ['idempotency_key'], unique=True)
    op.create_index('ix_wallet_transactions_wallet_created', 'wallet_transactions', ['wallet_id', 'created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema - drop every storefront table and enum type."""
    for table in (
        'wallet_transactions',
        'wallets',
        'payments',
        'store_return_requests',
        'store_order_items',
        'store_orders',
        'store_checkout_items',
        'store_checkout_sessions',
        'store_coupons',
        'store_shipping_addresses',
        'store_user_addresses',
        'store_cart_items',
        'store_inventory_movements',
        'store_products',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in ENUM_NAMES:
        sa.Enum(name=name).drop(bind, checkfirst=True)
