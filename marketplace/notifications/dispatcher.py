"""Fire-and-forget hand-off of notification jobs to the Kafka topic.

Callers never await delivery: ``dispatch`` schedules a task and returns.
Publishing failures and timeouts are logged and dropped.
"""
import asyncio
import logging
from typing import Any, Dict, Set

from ..common.config import settings
from ..common.kafka_client import publish_json

_logger = logging.getLogger(__name__)

# strong refs so pending tasks are not garbage collected mid-flight
_pending: Set[asyncio.Task] = set()


async def _publish(kind: str, payload: Dict[str, Any]) -> None:
    try:
        # one producer start attempt per dispatch; a down broker fails fast
        await asyncio.wait_for(
            publish_json(
                settings.NOTIFICATIONS_TOPIC,
                {"kind": kind, "payload": payload},
                start_attempts=1,
            ),
            timeout=settings.NOTIFICATIONS_PUBLISH_TIMEOUT,
        )
        _logger.info("Notification queued | kind=%s", kind)
    except Exception:
        _logger.exception("Failed to queue notification | kind=%s", kind)


def dispatch(kind: str, payload: Dict[str, Any]) -> None:
    if not settings.NOTIFICATIONS_ENABLED:
        _logger.info("Notifications disabled; dropping | kind=%s", kind)
        return
    task = asyncio.create_task(_publish(kind, payload))
    _pending.add(task)
    task.add_done_callback(_pending.discard)


async def drain(timeout: float = 2.0) -> None:
    """Wait briefly for in-flight publishes, then cancel the rest (used on shutdown)."""
    if not _pending:
        return
    _, still_pending = await asyncio.wait(set(_pending), timeout=timeout)
    if still_pending:
        _logger.warning("Cancelling unsent notifications | count=%s", len(still_pending))
        for task in still_pending:
            task.cancel()
        await asyncio.gather(*still_pending, return_exceptions=True)
