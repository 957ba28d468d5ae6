"""
SSE endpoint relaying scan progress published on the session's Redis channel.

When Redis is unreachable the stream falls back to polling the in-process
session, so clients get the same events either way.
"""
import asyncio
import json
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, status
from redis.exceptions import RedisError
from sse_starlette.sse import EventSourceResponse

from cwv_auditor.features.scan.schemas.scan import ScanSessionStatus
from cwv_auditor.features.scan.services.orchestration.orchestrator import ScanSession
from cwv_auditor.features.scan.services.scan_manager import ScanManager, get_scan_manager
from cwv_auditor.features.scan.workers.sse_publisher import (
    get_redis_client,
    progress_channel,
    progress_event_payload,
    snapshot_event,
)
from cwv_auditor.platform.config import settings
from cwv_auditor.platform.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/scan", tags=["scan"])

HEARTBEAT_INTERVAL = 15.0
POLL_INTERVAL = 1.0

FINAL_STATUSES = {ScanSessionStatus.completed.value, ScanSessionStatus.cancelled.value}


def _progress(event: dict) -> dict:
    return {"event": "progress", "data": json.dumps(event)}


def _complete(session_id: str, status_str: str) -> dict:
    return {
        "event": "complete",
        "data": json.dumps({"session_id": session_id, "status": status_str, "final": True}),
    }


def _heartbeat() -> dict:
    return {
        "event": "heartbeat",
        "data": json.dumps({"timestamp": asyncio.get_running_loop().time()}),
    }


async def _poll_session(session: ScanSession) -> AsyncGenerator[dict, None]:
    last_cursor = None
    while True:
        cursor = session.cursor
        if cursor != last_cursor or session.is_finished:
            last_cursor = cursor
            index = cursor - 1 if cursor else None
            yield _progress(progress_event_payload(session.progress_event(index)))
        if session.is_finished:
            yield _complete(session.id, session.status.value)
            return
        await asyncio.sleep(POLL_INTERVAL)


async def scan_progress_stream(session: ScanSession) -> AsyncGenerator[dict, None]:
    """
    Yield the full current snapshot first, then per-transition updates until
    the session reaches a final status or the connection times out.
    """
    yield _progress(snapshot_event(session.snapshot()))

    if session.is_finished:
        yield _complete(session.id, session.status.value)
        return

    channel = progress_channel(session.id)
    pubsub = None
    try:
        pubsub = get_redis_client().pubsub()
        await pubsub.subscribe(channel)
    except (RedisError, OSError) as e:
        if pubsub is not None:
            await pubsub.aclose()
        logger.warning(f"SSE: Redis unavailable for scan {session.id}, polling instead: {e}")
        async for event in _poll_session(session):
            yield event
        return

    logger.info(f"SSE: Subscribed to {channel}")
    loop = asyncio.get_running_loop()
    deadline = loop.time() + settings.SSE_CONNECTION_TIMEOUT

    try:
        while True:
            if loop.time() > deadline:
                logger.info(f"SSE: Connection timeout for scan {session.id}")
                yield {"event": "timeout", "data": json.dumps({"message": "Connection timeout"})}
                break

            message = await pubsub.get_message(
                ignore_subscribe_messages=True, timeout=HEARTBEAT_INTERVAL
            )
            if not message or message["type"] != "message":
                yield _heartbeat()
                # a final event published before we subscribed is never replayed
                if session.is_finished:
                    yield _progress(progress_event_payload(session.progress_event()))
                    yield _complete(session.id, session.status.value)
                    break
                continue

            event = json.loads(message["data"])
            yield _progress(event)
            if event.get("status") in FINAL_STATUSES:
                yield _complete(session.id, event["status"])
                break
    except (RedisError, OSError) as e:
        logger.error(f"SSE: Error streaming scan {session.id}: {e}", exc_info=True)
        yield {"event": "error", "data": json.dumps({"error": str(e)})}
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        logger.info(f"SSE: Closed connection for scan {session.id}")


@router.get("/{session_id}/events", summary="Stream scan progress (SSE)")
async def stream_scan_progress(
    session_id: str,
    manager: ScanManager = Depends(get_scan_manager),
):
    """
    Event types: `progress` (the full snapshot on connect, then the changed
    record and counters after each page transition),
    `complete` (final status, stream closes), `heartbeat`, `timeout`, `error`.
    """
    session = manager.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Scan session {session_id} not found",
        )

    logger.info(f"SSE: Client connected for scan {session_id}")

    return EventSourceResponse(
        scan_progress_stream(session),
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
