"""
Unit tests for inventory service.

Tests: atomic deduction (all-or-nothing, never negative), best-effort
restore, stock checks and absolute updates.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from domain.errors import InsufficientStockError, NotFoundError, ValidationError
from services import inventory_service


@pytest.mark.unit
@pytest.mark.asyncio
async def test_deduct_stock_success(db_session, variant_a, variant_b):
    await inventory_service.deduct_stock(
        db_session,
        [{"variant_id": variant_a.id, "quantity": 3}, {"variant_id": variant_b.id, "quantity": 5}],
    )
    await db_session.commit()
    await db_session.refresh(variant_a)
    await db_session.refresh(variant_b)

    assert variant_a.stock == 7
    assert variant_b.stock == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_deduct_stock_over_quantity_is_all_or_nothing(db_session, variant_a, variant_b):
    """First item fits, second does not: nothing is deducted."""
    with pytest.raises(InsufficientStockError) as exc_info:
        await inventory_service.deduct_stock(
            db_session,
            [{"variant_id": variant_a.id, "quantity": 4}, {"variant_id": variant_b.id, "quantity": 6}],
        )
    assert exc_info.value.status_code == 400
    assert variant_b.id in exc_info.value.message

    await db_session.commit()
    await db_session.refresh(variant_a)
    await db_session.refresh(variant_b)
    assert variant_a.stock == 10
    assert variant_b.stock == 5


@pytest.mark.unit
@pytest.mark.asyncio
async def test_deduct_stock_never_negative(db_session, variant_b):
    for _ in range(5):
        await inventory_service.deduct_stock(db_session, [{"variant_id": variant_b.id, "quantity": 1}])
    with pytest.raises(InsufficientStockError):
        await inventory_service.deduct_stock(db_session, [{"variant_id": variant_b.id, "quantity": 1}])
    await db_session.commit()
    await db_session.refresh(variant_b)
    assert variant_b.stock == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_deduct_stock_unknown_variant(db_session):
    with pytest.raises(InsufficientStockError):
        await inventory_service.deduct_stock(db_session, [{"variant_id": "missing", "quantity": 1}])


@pytest.mark.unit
@pytest.mark.asyncio
async def test_deduct_stock_rejects_non_positive_quantity(db_session, variant_a):
    with pytest.raises(ValidationError):
        await inventory_service.deduct_stock(db_session, [{"variant_id": variant_a.id, "quantity": 0}])


@pytest.mark.unit
@pytest.mark.asyncio
async def test_restore_stock_adds_exact_quantity(db_session, variant_a, variant_b):
    result = await inventory_service.restore_stock(
        db_session,
        [{"variant_id": variant_a.id, "quantity": 2}, {"variant_id": variant_b.id, "quantity": 1}],
    )
    await db_session.commit()
    await db_session.refresh(variant_a)
    await db_session.refresh(variant_b)

    assert result == {"success": True, "restored": 2, "error": None}
    assert variant_a.stock == 12
    assert variant_b.stock == 6


@pytest.mark.unit
@pytest.mark.asyncio
async def test_restore_stock_continues_past_missing_variant(db_session, variant_a):
    result = await inventory_service.restore_stock(
        db_session,
        [{"variant_id": "ghost", "quantity": 2}, {"variant_id": variant_a.id, "quantity": 1}],
    )
    await db_session.commit()
    await db_session.refresh(variant_a)

    assert result["success"] is False
    assert result["restored"] == 1
    assert "ghost" in result["error"]
    assert variant_a.stock == 11


@pytest.mark.unit
@pytest.mark.asyncio
async def test_check_variant_stock(db_session, variant_a):
    assert await inventory_service.check_variant_stock(db_session, variant_a.id) == {
        "in_stock": True,
        "stock": 10,
    }
    with pytest.raises(NotFoundError):
        await inventory_service.check_variant_stock(db_session, "ghost")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_stock(db_session, variant_a):
    variant = await inventory_service.update_stock(db_session, variant_a.id, 0)
    await db_session.commit()
    assert variant.stock == 0
    assert (await inventory_service.check_variant_stock(db_session, variant_a.id))["in_stock"] is False

    with pytest.raises(ValidationError):
        await inventory_service.update_stock(db_session, variant_a.id, -1)
