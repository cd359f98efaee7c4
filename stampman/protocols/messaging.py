"""Messaging gateway protocol for outbound campaign messages."""

from typing import Protocol, runtime_checkable


class GatewayError(Exception):
    """
    Delivery failure reported by a gateway.

    ``retryable`` is False for failures a retry cannot fix (invalid
    recipient, bad credentials, unknown instance).
    """

    def __init__(self, code: str, message: str = "", retryable: bool = False):
        self.code = code
        self.message = message or code
        self.retryable = retryable
        super().__init__(f"[{code}] {self.message}")


@runtime_checkable
class MessagingGateway(Protocol):
    """
    Protocol for delivering a rendered message to a phone number.

    The gateway owns retries, backoff and provider formatting. The engine
    only records whether the final outcome was sent or failed.

    Configuration in settings.py:
        STAMPMAN = {
            "MESSAGING_BACKEND": "stampman.adapters.evolution.EvolutionGateway",
        }
    """

    def send(self, recipient_phone: str, body: str) -> str:
        """
        Deliver ``body`` to ``recipient_phone``.

        Returns:
            Provider message id (may be empty)

        Raises:
            GatewayError: When delivery failed for good
        """
        ...
