"""
Outbox Service — reliable dispatch of external side effects (order emails).

Flow:
    1. The order/payment mutation calls enqueue_order_email() in the same
       transaction, so the email intent is committed iff the change is
    2. The route dispatches the new events right after commit
    3. Each dispatcher claims a row (pending -> sending) before sending it,
       so the route and the worker never send the same email twice
    4. Anything that failed goes back to pending; a background task retries
       it every OUTBOX_POLL_SECONDS, up to OUTBOX_MAX_ATTEMPTS

This runs as an asyncio background task during the FastAPI app lifespan.
"""
import asyncio
import json
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import async_session
from db_models import OutboxEvent
from domain.constants import OUTBOX_KIND_ORDER_EMAIL
from domain.enums import OrderEmailType, OutboxStatus

logger = logging.getLogger(__name__)

# Worker state
_worker_task: Optional[asyncio.Task] = None
_is_running: bool = False
_dispatched_count: int = 0
_failed_count: int = 0


# ════════════════════════════════════════════════════════════════════
# Enqueue
# ════════════════════════════════════════════════════════════════════


async def enqueue_order_email(
    db: AsyncSession,
    *,
    order_id: str,
    email_type: OrderEmailType,
) -> OutboxEvent:
    """
    Record an order email to send. Does not commit.

    Idempotent: the same (order, type) pair is only ever queued once.
    """
    payload = json.dumps({"order_id": order_id, "type": OrderEmailType(email_type).value}, sort_keys=True)
    res = await db.execute(
        select(OutboxEvent).where(
            OutboxEvent.kind == OUTBOX_KIND_ORDER_EMAIL,
            OutboxEvent.payload == payload,
        )
    )
    existing = res.scalar_one_or_none()
    if existing:
        return existing

    event = OutboxEvent(
        kind=OUTBOX_KIND_ORDER_EMAIL,
        payload=payload,
        status=OutboxStatus.PENDING.value,
        attempts=0,
    )
    db.add(event)
    await db.flush()
    return event


# ════════════════════════════════════════════════════════════════════
# Dispatch
# ════════════════════════════════════════════════════════════════════


async def _handle(db: AsyncSession, event: OutboxEvent) -> dict:
    if event.kind == OUTBOX_KIND_ORDER_EMAIL:
        from services import email_service

        data = json.loads(event.payload)
        return await email_service.send_order_email(db, data["order_id"], data["type"])
    return {"success": False, "error": f"Unknown outbox kind: {event.kind}"}


def _claimable():
    """Pending events, plus sending events whose claim has gone stale."""
    stale_before = datetime.utcnow() - timedelta(seconds=settings.outbox_claim_timeout_seconds)
    return or_(
        OutboxEvent.status == OutboxStatus.PENDING.value,
        and_(
            OutboxEvent.status == OutboxStatus.SENDING.value,
            OutboxEvent.claimed_at < stale_before,
        ),
    )


async def _claim(db: AsyncSession, event_id: int) -> bool:
    """
    Atomically take an event for sending and commit the claim.

    Only one dispatcher can move a row out of the claimable set, so the
    loser sees zero affected rows (or a lock error) and skips the event.
    """
    try:
        result = await db.execute(
            update(OutboxEvent)
            .where(OutboxEvent.id == event_id, _claimable())
            .values(
                status=OutboxStatus.SENDING.value,
                attempts=OutboxEvent.attempts + 1,
                claimed_at=datetime.utcnow(),
            )
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(f"Outbox event {event_id} claim failed, leaving it for the next pass: {e}")
        return False
    return result.rowcount > 0


async def dispatch_event(db: AsyncSession, event_id: int) -> bool:
    """
    Claim one event, run its handler and record the outcome on the row.

    Returns True only when this call sent the event. Handler failures never
    raise; database errors while recording the outcome do.
    """
    global _dispatched_count, _failed_count

    if not await _claim(db, event_id):
        return False

    event = await db.get(OutboxEvent, event_id, populate_existing=True)
    try:
        result = await _handle(db, event)
    except Exception as e:
        logger.error(f"Outbox event {event.id} handler crashed: {e}", exc_info=True)
        result = {"success": False, "error": str(e)}

    event.claimed_at = None
    if result.get("success"):
        event.status = OutboxStatus.SENT.value
        event.sent_at = datetime.utcnow()
        event.last_error = None
        await db.commit()
        _dispatched_count += 1
        return True

    event.last_error = result.get("error")
    if event.attempts >= settings.outbox_max_attempts:
        event.status = OutboxStatus.FAILED.value
        _failed_count += 1
        logger.error(
            f"ABANDONED: outbox event {event.id} ({event.kind}) failed after "
            f"{event.attempts} attempts: {event.last_error}. Manual intervention required."
        )
    else:
        event.status = OutboxStatus.PENDING.value
        logger.warning(
            f"Outbox event {event.id} ({event.kind}) failed "
            f"(attempt {event.attempts}/{settings.outbox_max_attempts}): {event.last_error}"
        )
    await db.commit()
    return False


async def dispatch_events(db: AsyncSession, event_ids: list[int]) -> dict:
    """Dispatch specific events (right after the request that queued them commits)."""
    if not event_ids:
        return {"sent": 0, "pending": 0}
    sent = 0
    for event_id in event_ids:
        if await dispatch_event(db, event_id):
            sent += 1
    return {"sent": sent, "pending": len(event_ids) - sent}


async def dispatch_after_commit(db: AsyncSession, event_ids: list[int], *, order_id: str) -> dict:
    """
    Route-side dispatch once the primary change is committed.

    A database error here must not turn a committed checkout or callback
    into a 500; the events stay queued and the worker picks them up.
    """
    try:
        return await dispatch_events(db, event_ids)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning(f"Email dispatch for order {order_id[:8]} deferred to the outbox worker: {e}")
        return {"sent": 0, "pending": len(event_ids)}


async def dispatch_pending(db: AsyncSession, limit: int | None = None) -> dict:
    """Retry a batch of pending (or abandoned in-flight) events, oldest first."""
    res = await db.execute(
        select(OutboxEvent.id)
        .where(_claimable())
        .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
        .limit(limit or settings.outbox_batch_size)
    )
    event_ids = list(res.scalars().all())
    # End the read transaction before claiming
    await db.commit()

    sent = 0
    for event_id in event_ids:
        if await dispatch_event(db, event_id):
            sent += 1
    return {"processed": len(event_ids), "sent": sent}


# ════════════════════════════════════════════════════════════════════
# Background Worker
# ════════════════════════════════════════════════════════════════════


async def _worker_loop():
    logger.info(
        f"Outbox worker started (every {settings.outbox_poll_seconds}s, "
        f"max {settings.outbox_max_attempts} attempts)"
    )
    while _is_running:
        try:
            await asyncio.sleep(settings.outbox_poll_seconds)
            async with async_session() as db:
                result = await dispatch_pending(db)
            if result["processed"]:
                logger.info(f"  Outbox retry: {result['sent']}/{result['processed']} sent")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error(f"Outbox worker error: {e}")


async def start():
    """Start the retry worker as a background asyncio task."""
    global _worker_task, _is_running

    if _worker_task and not _worker_task.done():
        logger.warning("Outbox worker already running")
        return

    _is_running = True
    _worker_task = asyncio.create_task(_worker_loop())


async def stop():
    """Stop the retry worker gracefully."""
    global _worker_task, _is_running
    _is_running = False

    if _worker_task and not _worker_task.done():
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            pass

    _worker_task = None
    logger.info("Outbox worker stopped")


def get_status() -> dict:
    """Worker status for the /outbox/status endpoint."""
    return {
        "running": _is_running,
        "dispatchedCount": _dispatched_count,
        "failedCount": _failed_count,
        "pollIntervalSeconds": settings.outbox_poll_seconds,
        "maxAttempts": settings.outbox_max_attempts,
    }
