"""Development MessagingGateway that only logs."""

import logging
import uuid as uuid_lib

logger = logging.getLogger("stampman.messages")


class LoggingGateway:
    """
    Adapter that implements MessagingGateway by writing to the log.

    Configuration in settings.py:
        STAMPMAN = {
            "MESSAGING_BACKEND": "stampman.adapters.logging_gateway.LoggingGateway",
        }
    """

    def send(self, recipient_phone: str, body: str) -> str:
        message_id = uuid_lib.uuid4().hex
        logger.info("Message %s to %s: %s", message_id, recipient_phone, body)
        return message_id
