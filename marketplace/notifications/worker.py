import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ..common.config import settings
from ..common.kafka_client import close_consumer, create_consumer
from . import email

_logger = logging.getLogger(__name__)


async def _invoice(p: Dict[str, Any]) -> bool:
    return await email.send_invoice_email(p["to"], p["order"], p["items"], p.get("buyer_name", ""))


async def _seller_order(p: Dict[str, Any]) -> bool:
    return await email.send_seller_order_email(
        p["to"], p["order"], p["items"], p.get("buyer_name", ""), p.get("payout")
    )


async def _wire_instructions(p: Dict[str, Any]) -> bool:
    return await email.send_wire_instructions_email(p["to"], p["order"])


async def _shipping_update(p: Dict[str, Any]) -> bool:
    return await email.send_shipping_update_email(p["to"], p["order"])


async def _order_cancelled(p: Dict[str, Any]) -> bool:
    return await email.send_order_cancelled_email(p["to"], p["order_code"])


async def _password_reset(p: Dict[str, Any]) -> bool:
    return await email.send_password_reset_email(p["to"], p["code"])


HANDLERS: Dict[str, Callable[[Dict[str, Any]], Awaitable[bool]]] = {
    "invoice": _invoice,
    "seller_order": _seller_order,
    "wire_instructions": _wire_instructions,
    "shipping_update": _shipping_update,
    "order_cancelled": _order_cancelled,
    "password_reset": _password_reset,
}


async def handle_message(raw: bytes) -> Optional[bool]:
    """Decode one notification message and deliver it. ``None`` means skipped."""
    try:
        message = json.loads(raw.decode("utf-8"))
        kind = message["kind"]
        payload = message["payload"]
    except (ValueError, KeyError, TypeError, AttributeError):
        _logger.warning("Skipping malformed notification message")
        return None
    if not isinstance(kind, str) or not isinstance(payload, dict):
        _logger.warning("Skipping malformed notification message")
        return None

    handler = HANDLERS.get(kind)
    if handler is None:
        _logger.warning("Skipping unknown notification kind | kind=%s", kind)
        return None
    try:
        sent = await handler(payload)
    except KeyError as e:
        _logger.warning("Notification payload missing field | kind=%s field=%s", kind, e)
        return None
    except (TypeError, ValueError) as e:
        _logger.warning("Notification payload has a bad value | kind=%s err=%s", kind, e)
        return None
    _logger.info("Notification processed | kind=%s sent=%s", kind, sent)
    return sent


async def notifications_worker(stop_event: Optional[asyncio.Event] = None):
    """
    Kafka consumer that delivers queued notification emails.
    - One message per email; delivery failures are logged, never retried
    - Resilient to Kafka outages: reconnects with backoff
    """
    backoff = 1.0
    while True:
        if stop_event and stop_event.is_set():
            break
        consumer = None
        try:
            _logger.info("Notifications worker connecting to Kafka topic=%s", settings.NOTIFICATIONS_TOPIC)
            consumer = await create_consumer(settings.NOTIFICATIONS_TOPIC, group_id="notifications-worker")
            _logger.info("Notifications worker connected and consuming")
            backoff = 1.0  # reset after successful connect
            while True:
                if stop_event and stop_event.is_set():
                    break
                batch = await consumer.getmany(timeout_ms=1000)
                for _, messages in batch.items():
                    for record in messages:
                        await handle_message(record.value)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            _logger.warning("Notifications worker error, will retry | err=%s", e)
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, 30.0)
        finally:
            await close_consumer(consumer)
