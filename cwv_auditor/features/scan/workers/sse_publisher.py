"""
Redis pub/sub helpers for real-time scan progress.

The orchestrator publishes a small delta event after every observable
transition; the SSE endpoint sends one full snapshot when a client connects
and relays the deltas from the session's channel after that.
"""

import json
from typing import Optional

import redis.asyncio as aioredis
from fastapi.encoders import jsonable_encoder
from redis.exceptions import RedisError

from cwv_auditor.features.scan.schemas.scan import ScanProgress, ScanProgressEvent, ScanSnapshot
from cwv_auditor.platform.config import settings
from cwv_auditor.platform.logger import get_logger

logger = get_logger(__name__)

_redis_client: Optional[aioredis.Redis] = None


def progress_channel(session_id: str) -> str:
    return f"scan_progress:{session_id}"


def get_redis_client() -> aioredis.Redis:
    global _redis_client

    if _redis_client is None:
        _redis_client = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        )
        logger.info(f"Initialized Redis client for SSE: {settings.REDIS_URL}")

    return _redis_client


def _percent(progress: ScanProgress) -> int:
    if not progress.total:
        return 100
    return int(progress.current * 100 / progress.total)


def snapshot_event(snapshot: ScanSnapshot) -> dict:
    """
    Event payload for a whole snapshot, sent once per SSE connection.
    `progress` is a 0-100 percentage; the raw counts stay under `current`/`total`.
    """
    return {
        "session_id": snapshot.session_id,
        "status": snapshot.status.value,
        "progress": _percent(snapshot.progress),
        "current": snapshot.progress.current,
        "total": snapshot.progress.total,
        "snapshot": jsonable_encoder(snapshot),
    }


def progress_event_payload(event: ScanProgressEvent) -> dict:
    """Event payload for one transition: same counters, plus the changed record."""
    return {
        "session_id": event.session_id,
        "status": event.status.value,
        "progress": _percent(event.progress),
        "current": event.progress.current,
        "total": event.progress.total,
        "update": jsonable_encoder(event),
    }


async def publish_scan_progress(event: ScanProgressEvent) -> bool:
    """
    Publish a progress event to the session's channel.

    Returns False (and logs) when Redis is unreachable; progress events are
    best effort and never stop a scan.
    """
    try:
        redis_client = get_redis_client()
        await redis_client.publish(
            progress_channel(event.session_id), json.dumps(progress_event_payload(event))
        )
        return True
    except (RedisError, OSError) as e:
        logger.warning(f"Failed to publish progress for scan {event.session_id}: {e}")
        return False
