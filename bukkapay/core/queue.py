import json
import logging
from aio_pika import connect_robust, Message, DeliveryMode
from bukkapay.core.config import settings

logger = logging.getLogger(__name__)

_connection = None
_channel = None


async def get_channel():
    """
    Get a persistent RabbitMQ channel.
    """
    global _connection, _channel
    if _channel and not _channel.is_closed:
        return _channel

    _connection = await connect_robust(settings.RABBITMQ_URL)
    _channel = await _connection.channel()
    return _channel


async def close_channel() -> None:
    global _connection, _channel
    if _connection is not None:
        await _connection.close()
    _connection = None
    _channel = None


async def publish_message(queue: str, message: dict):
    """
    Publish a message to the specified queue. Without RABBITMQ_URL the
    message is only logged.
    """
    if not settings.RABBITMQ_URL:
        logger.info("queue disabled, dropping message for %s: %s", queue, message)
        return

    channel = await get_channel()
    await channel.declare_queue(queue, durable=True)

    msg = Message(
        body=json.dumps(message, default=str).encode("utf-8"),
        delivery_mode=DeliveryMode.PERSISTENT,
        content_type="application/json",
    )
    await channel.default_exchange.publish(msg, routing_key=queue)


async def publish_transfer_message(message: dict):
    await publish_message(settings.RABBITMQ_QUEUE_TRANSFERS, message)


async def publish_settlement_message(message: dict):
    await publish_message(settings.RABBITMQ_QUEUE_SETTLEMENT, message)
