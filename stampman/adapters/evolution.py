"""Evolution WhatsApp API MessagingGateway adapter."""

import logging

import backoff
import requests

from stampman.conf import stampman_settings
from stampman.protocols.messaging import GatewayError

logger = logging.getLogger(__name__)


class EvolutionGateway:
    """
    Adapter that implements MessagingGateway over the Evolution API.

    Retries transient failures (timeouts, connection errors, 429, 5xx) with
    backoff.expo, waiting BACKOFF_BASE ** attempt seconds, up to
    MESSAGING_MAX_ATTEMPTS attempts. Invalid recipients and credential
    errors fail immediately.

    Configuration in settings.py:
        STAMPMAN = {
            "MESSAGING_BACKEND": "stampman.adapters.evolution.EvolutionGateway",
            "EVOLUTION_API_URL": "https://evolution.example.com",
            "EVOLUTION_API_KEY": "...",
            "EVOLUTION_INSTANCE": "my-shop",
        }
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        instance: str | None = None,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
        timeout: int | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or stampman_settings.EVOLUTION_API_URL).rstrip("/")
        self.api_key = api_key or stampman_settings.EVOLUTION_API_KEY
        if not self.base_url or not self.api_key:
            raise ValueError("EVOLUTION_API_URL and EVOLUTION_API_KEY must be set")

        self.instance = instance or stampman_settings.EVOLUTION_INSTANCE
        self.max_attempts = max_attempts or stampman_settings.MESSAGING_MAX_ATTEMPTS
        self.backoff_base = backoff_base or stampman_settings.MESSAGING_BACKOFF_BASE
        self.timeout = timeout or stampman_settings.MESSAGING_TIMEOUT
        self.session = session or requests.Session()

    def send(self, recipient_phone: str, body: str) -> str:
        send_with_retry = backoff.on_exception(
            backoff.expo,
            GatewayError,
            max_tries=self.max_attempts,
            giveup=_is_permanent,
            jitter=None,
            logger=logger,
            base=self.backoff_base,
            factor=self.backoff_base,
        )(self._send_once)
        return send_with_retry(recipient_phone, body)

    def _send_once(self, recipient_phone: str, body: str) -> str:
        payload = {
            "number": self.format_phone(recipient_phone),
            "options": {"delay": 1200, "presence": "composing", "linkPreview": False},
            "textMessage": {"text": body},
        }
        try:
            response = self.session.post(
                f"{self.base_url}/message/sendText/{self.instance}",
                json=payload,
                headers={"apikey": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise GatewayError("REQUEST_TIMEOUT", retryable=True)
        except requests.RequestException as exc:
            raise GatewayError("CONNECTION_ERROR", str(exc), retryable=True)

        status = response.status_code
        if status == 400:
            raise GatewayError("INVALID_PHONE_NUMBER", response.text[:200])
        if status == 401:
            raise GatewayError("INVALID_API_KEY")
        if status == 404:
            raise GatewayError("INSTANCE_NOT_FOUND")
        if status == 429:
            raise GatewayError("RATE_LIMITED", retryable=True)
        if status >= 500:
            raise GatewayError("EVOLUTION_API_ERROR", f"HTTP {status}", retryable=True)
        if status >= 300:
            raise GatewayError("EVOLUTION_API_ERROR", f"HTTP {status}")

        try:
            data = response.json()
        except ValueError:
            return ""
        if not isinstance(data, dict):
            return ""
        key = data.get("key")
        return str(key.get("id", "")) if isinstance(key, dict) else ""

    @staticmethod
    def format_phone(phone: str) -> str:
        """Evolution expects digits only (country code included)."""
        return "".join(ch for ch in phone if ch.isdigit())


def _is_permanent(exc: GatewayError) -> bool:
    return not exc.retryable
