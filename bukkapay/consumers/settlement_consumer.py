import asyncio
import json
import logging
from aio_pika import connect_robust, IncomingMessage
from bukkapay.core.config import settings
from bukkapay.core.exceptions import LedgerError, StorageFailure
from bukkapay.core.logger import configure_logging
from bukkapay.db.db import AsyncSessionLocal
from bukkapay.services.ledger import settle_external

logger = logging.getLogger("settlement_consumer")

RABBITMQ_QUEUE = settings.RABBITMQ_QUEUE_SETTLEMENT


async def process_settlement(session_factory, data: dict):
    """
    Apply one settlement outcome. The payout partner reports failures with
    ``"success": false``; requests published by the ledger carry no outcome
    and are confirmed as they are handed over.
    """
    transfer_id = data.get("transfer_id")
    if not transfer_id:
        logger.warning("Settlement message without transfer_id: %s", data)
        return None
    success = bool(data.get("success", True))

    async with session_factory() as db:
        result = await settle_external(db, transfer_id, success)
    logger.info("Settlement processed for transfer %s: %s", transfer_id, result.status.value)
    return result


async def handle_settlement_message(message: IncomingMessage):
    # StorageFailure propagates so the message is requeued for another try.
    async with message.process(requeue=True):
        try:
            data = json.loads(message.body.decode())
            await process_settlement(AsyncSessionLocal, data)
        except StorageFailure:
            raise
        except (LedgerError, ValueError) as e:
            logger.error("Dropping settlement message %r: %s", message.body, e)


async def main():
    configure_logging()
    connection = await connect_robust(settings.RABBITMQ_URL)
    async with connection:
        channel = await connection.channel()
        await channel.set_qos(prefetch_count=10)
        queue = await channel.declare_queue(RABBITMQ_QUEUE, durable=True)
        await queue.consume(handle_settlement_message)
        logger.info("Consuming settlement messages from %s", RABBITMQ_QUEUE)
        await asyncio.Future()


if __name__ == "__main__":
    asyncio.run(main())
