import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, TypeVar

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer

from .config import settings

_logger = logging.getLogger(__name__)

_producer: Optional[AIOKafkaProducer] = None
_producer_lock = asyncio.Lock()

# 1+2+4+8+16+30+30 ~= 91s of backoff before giving up
_START_ATTEMPTS = 8
_MAX_BACKOFF = 30.0

C = TypeVar("C", AIOKafkaProducer, AIOKafkaConsumer)


def _encode(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload, default=str).encode("utf-8")


async def _stop_quietly(client, label: str) -> None:
    try:
        await client.stop()
    except Exception as e:
        _logger.warning("Kafka %s stop after failed start raised | err=%s", label, e)


async def _start_with_backoff(
    build: Callable[[], C], label: str, attempts: int = _START_ATTEMPTS
) -> C:
    """Build and start a Kafka client, retrying while the broker is unreachable.

    A client whose start fails (or is cancelled) is stopped before the next
    attempt so its connections and background tasks are released.
    """
    backoff = 1.0
    last_exc: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        client = build()
        try:
            await client.start()
            return client
        except asyncio.CancelledError:
            await _stop_quietly(client, label)
            raise
        except Exception as e:
            last_exc = e
            _logger.warning("Kafka %s start failed | attempt=%s err=%s", label, attempt, e)
            await _stop_quietly(client, label)
            if attempt < attempts:
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, _MAX_BACKOFF)
    raise last_exc or RuntimeError(f"Kafka {label} start failed")


async def get_producer(start_attempts: int = _START_ATTEMPTS) -> AIOKafkaProducer:
    global _producer
    if _producer is None:
        async with _producer_lock:
            if _producer is None:
                _producer = await _start_with_backoff(
                    lambda: AIOKafkaProducer(
                        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
                        client_id=f"marketplace-{settings.INSTANCE_ID}",
                        value_serializer=_encode,
                    ),
                    "producer",
                    start_attempts,
                )
    return _producer


async def publish_json(
    topic: str, payload: Dict[str, Any], start_attempts: int = _START_ATTEMPTS
) -> None:
    producer = await get_producer(start_attempts)
    await producer.send_and_wait(topic, payload)


async def close_producer() -> None:
    global _producer
    if _producer is not None:
        producer, _producer = _producer, None
        await producer.stop()


async def create_consumer(topic: str, group_id: str) -> AIOKafkaConsumer:
    return await _start_with_backoff(
        lambda: AIOKafkaConsumer(
            topic,
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            group_id=group_id,
            enable_auto_commit=True,
            auto_offset_reset="earliest",
        ),
        "consumer",
    )


async def close_consumer(consumer: Optional[AIOKafkaConsumer]) -> None:
    if consumer is not None:
        await consumer.stop()
