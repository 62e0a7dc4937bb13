"""Store cart router: the mutable cart a checkout session snapshots."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.errors import InsufficientStock, NotFoundError
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.store_service.models import CartItem, Product
from services.store_service.schemas import CartItemAdd, CartItemResponse
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["store"])
logger = get_logger(__name__)


@router.get("/cart", response_model=list[CartItemResponse])
async def get_cart(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    result = await db.execute(
        select(CartItem)
        .where(CartItem.user_id == current_user.user_id)
        .order_by(CartItem.added_at)
    )
    return result.scalars().all()


@router.post("/cart/items", response_model=CartItemResponse)
async def add_cart_item(
    data: CartItemAdd,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a product, or set the quantity if it is already in the cart."""
    product = await db.get(Product, data.product_id)
    if not product or product.is_deleted:
        raise NotFoundError("Product not found")
    if product.stock_quantity < data.quantity:
        raise InsufficientStock(
            product.id,
            requested=data.quantity,
            available=product.stock_quantity,
            product_name=product.name,
        )

    result = await db.execute(
        select(CartItem).where(
            CartItem.user_id == current_user.user_id,
            CartItem.product_id == product.id,
        )
    )
    item = result.scalar_one_or_none()
    if item:
        item.quantity = data.quantity
    else:
        item = CartItem(
            user_id=current_user.user_id,
            product_id=product.id,
            quantity=data.quantity,
        )
        db.add(item)
    await db.commit()
    return item


@router.delete("/cart/items/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_cart_item(
    product_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await db.execute(
        delete(CartItem).where(
            CartItem.user_id == current_user.user_id,
            CartItem.product_id == product_id,
        )
    )
    await db.commit()
