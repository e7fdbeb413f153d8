"""
Inventory service — per-variant stock checks and adjustments.

Every adjustment is a single conditional UPDATE so concurrent checkouts
can never read the same stock value and both succeed:

    UPDATE product_variants SET stock = stock - :q
    WHERE id = :id AND stock >= :q

Zero affected rows means the variant is missing or short on stock.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import ProductVariant
from domain.errors import InsufficientStockError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _normalize(items: list[dict]) -> list[tuple[str, int]]:
    """items: [{variant_id:str, quantity:int}] -> [(variant_id, quantity)]"""
    normalized = []
    for item in items:
        variant_id = str(item["variant_id"])
        quantity = int(item["quantity"])
        if quantity <= 0:
            raise ValidationError("Quantity must be positive", field="quantity")
        normalized.append((variant_id, quantity))
    return normalized


async def check_variant_stock(db: AsyncSession, variant_id: str) -> dict:
    res = await db.execute(
        select(ProductVariant.stock).where(ProductVariant.id == variant_id)
    )
    stock = res.scalar_one_or_none()
    if stock is None:
        raise NotFoundError("Variant", variant_id)
    return {"in_stock": stock > 0, "stock": stock}


async def update_stock(db: AsyncSession, variant_id: str, new_stock: int) -> ProductVariant:
    """Set an absolute stock level (admin correction)."""
    if new_stock < 0:
        raise ValidationError("Stock cannot be negative", field="stock")
    res = await db.execute(select(ProductVariant).where(ProductVariant.id == variant_id))
    variant = res.scalar_one_or_none()
    if not variant:
        raise NotFoundError("Variant", variant_id)
    variant.stock = new_stock
    await db.flush()
    return variant


async def _increment(db: AsyncSession, variant_id: str, quantity: int) -> bool:
    result = await db.execute(
        update(ProductVariant)
        .where(ProductVariant.id == variant_id)
        .values(stock=ProductVariant.stock + quantity)
    )
    return result.rowcount > 0


async def deduct_stock(db: AsyncSession, items: list[dict]) -> None:
    """
    Deduct stock for every item, all or nothing.

    Raises InsufficientStockError on the first item that cannot be covered.
    Items already deducted by this call are put back before raising, so a
    failed deduction never leaves a partial change behind even if the caller
    keeps using the session.
    """
    normalized = _normalize(items)
    deducted: list[tuple[str, int]] = []
    await db.flush()

    for variant_id, quantity in normalized:
        result = await db.execute(
            update(ProductVariant)
            .where(ProductVariant.id == variant_id, ProductVariant.stock >= quantity)
            .values(stock=ProductVariant.stock - quantity)
        )
        if result.rowcount == 0:
            for done_id, done_qty in reversed(deducted):
                await _increment(db, done_id, done_qty)
            logger.info(
                f"Stock deduction aborted at variant {variant_id} "
                f"(requested {quantity}); rolled back {len(deducted)} item(s)"
            )
            raise InsufficientStockError(variant_id, quantity)
        deducted.append((variant_id, quantity))


async def restore_stock(db: AsyncSession, items: list[dict]) -> dict:
    """
    Put stock back (e.g. cancelled order). Best-effort.

    Each item runs in its own SAVEPOINT. Continues past missing variants
    and failed writes; reports the last error encountered.
    """
    restored = 0
    last_error = None
    await db.flush()

    for item in items:
        variant_id = str(item["variant_id"])
        quantity = int(item["quantity"])
        try:
            async with db.begin_nested():
                found = await _increment(db, variant_id, quantity)
            if found:
                restored += 1
            else:
                last_error = f"Variant not found: {variant_id}"
                logger.warning(f"Stock restore skipped: variant {variant_id} not found")
        except SQLAlchemyError as e:
            last_error = str(e)
            logger.error(f"Stock restore failed for variant {variant_id}: {e}")

    return {"success": last_error is None, "restored": restored, "error": last_error}
