import logging

from bukkapay.core.queue import publish_transfer_message

logger = logging.getLogger(__name__)


async def publish_event(event_type: str, payload: dict):
    """
    Publish a domain event after the change it describes has committed.
    Delivery problems are logged; the committed change stands either way.
    """
    logger.info("publish_event %s %s", event_type, payload)
    try:
        await publish_transfer_message({"event": event_type, **payload})
    except Exception:
        logger.exception("Failed to publish event %s", event_type)
