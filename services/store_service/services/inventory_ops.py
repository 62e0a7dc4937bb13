"""Stock ledger: locked, all-or-nothing stock decrements and increments.

Product rows are always locked in product-id order so two sagas touching
overlapping products cannot deadlock each other.
"""

import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from libs.common.errors import InsufficientStock
from libs.common.logging import get_logger
from services.store_service.models import (
    InventoryMovement,
    InventoryMovementType,
    Product,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    product_id: uuid.UUID
    quantity: int
    product_name: Optional[str] = None


def _merge_lines(lines: Iterable[StockLine]) -> list[StockLine]:
    merged: dict[uuid.UUID, StockLine] = {}
    for line in lines:
        prev = merged.get(line.product_id)
        if prev:
            line = StockLine(line.product_id, prev.quantity + line.quantity, prev.product_name)
        merged[line.product_id] = line
    return [merged[pid] for pid in sorted(merged, key=str)]


async def lock_products(
    db: AsyncSession, product_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, Product]:
    """SELECT ... FOR UPDATE the given products, in product-id order."""
    ids = sorted(set(product_ids), key=str)
    if not ids:
        return {}
    result = await db.execute(
        select(Product)
        .where(Product.id.in_(ids))
        .order_by(Product.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {product.id: product for product in result.scalars().all()}


async def decrement_stock(
    db: AsyncSession,
    lines: Iterable[StockLine],
    *,
    reference_type: str,
    reference_id: str,
) -> None:
    """Reserve stock for every line or for none of them.

    All lines are checked before anything is written; the first shortfall
    raises InsufficientStock naming that product.
    """
    lines = _merge_lines(lines)
    products = await lock_products(db, (line.product_id for line in lines))

    for line in lines:
        product = products.get(line.product_id)
        available = 0 if product is None or product.is_deleted else product.stock_quantity
        if available < line.quantity:
            logger.warning(
                "Insufficient stock for product %s: requested %d, available %d",
                line.product_id,
                line.quantity,
                available,
            )
            raise InsufficientStock(
                line.product_id,
                requested=line.quantity,
                available=available,
                product_name=line.product_name or (product.name if product else None),
            )

    for line in lines:
        product = products[line.product_id]
        product.stock_quantity -= line.quantity
        db.add(
            InventoryMovement(
                product_id=product.id,
                movement_type=InventoryMovementType.SALE,
                quantity=-line.quantity,
                quantity_after=product.stock_quantity,
                reference_type=reference_type,
                reference_id=reference_id,
            )
        )
    await db.flush()


async def increment_stock(
    db: AsyncSession,
    lines: Iterable[StockLine],
    *,
    movement_type: InventoryMovementType,
    reference_type: str,
    reference_id: str,
    notes: Optional[str] = None,
) -> None:
    """Put stock back (cancellation, expiry, return). Flush only."""
    lines = _merge_lines(lines)
    products = await lock_products(db, (line.product_id for line in lines))

    for line in lines:
        product = products.get(line.product_id)
        if product is None:
            logger.warning(
                "Skipping restock of missing product %s (%s %s)",
                line.product_id,
                reference_type,
                reference_id,
            )
            continue
        product.stock_quantity += line.quantity
        db.add(
            InventoryMovement(
                product_id=product.id,
                movement_type=movement_type,
                quantity=line.quantity,
                quantity_after=product.stock_quantity,
                reference_type=reference_type,
                reference_id=reference_id,
                notes=notes,
            )
        )
    await db.flush()
