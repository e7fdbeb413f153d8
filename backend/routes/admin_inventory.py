"""
Admin inventory endpoints — per-variant stock lookup and correction.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import require_admin
from domain.responses import success_response
from models import UpdateStockRequest, VariantStockResponse
from services import inventory_service
from utils.validators import validated_variant_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/variants", tags=["admin-inventory"])


@router.get("/{variant_id}/stock")
async def get_variant_stock(
    variant_id: str = Depends(validated_variant_id),
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    stock = await inventory_service.check_variant_stock(db, variant_id)
    return success_response(
        data=VariantStockResponse(
            variant_id=variant_id, stock=stock["stock"], in_stock=stock["in_stock"]
        ).to_wire()
    )


@router.put("/{variant_id}/stock")
async def set_variant_stock(
    request: UpdateStockRequest,
    variant_id: str = Depends(validated_variant_id),
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Overwrite a variant's stock level (stocktake correction)."""
    variant = await inventory_service.update_stock(db, variant_id, request.stock)
    await db.commit()

    logger.info(f"Admin {admin_id[:8]} set stock of variant {variant_id[:8]} to {variant.stock}")
    return success_response(
        data=VariantStockResponse(
            variant_id=variant.id, stock=variant.stock, in_stock=variant.stock > 0
        ).to_wire()
    )
