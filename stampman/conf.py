"""
Stampman configuration.

Usage in settings.py:
    STAMPMAN = {
        "MAX_STAMP_QUANTITY": 10,
        "CONTENTION_RETRIES": 3,
        "MESSAGING_BACKEND": "stampman.adapters.evolution.EvolutionGateway",
        "EVOLUTION_API_URL": "https://evolution.example.com",
        "EVOLUTION_API_KEY": "...",
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class StampmanSettings:
    """Stampman configuration settings."""

    # Stamp grants
    MIN_STAMP_QUANTITY: int = 1
    MAX_STAMP_QUANTITY: int = 10
    DEFAULT_STAMPS_REQUIRED: int = 10

    # Optimistic write retries before CONTENTION is raised
    CONTENTION_RETRIES: int = 3

    # IdempotencyRecord cleanup
    IDEMPOTENCY_CLEANUP_DAYS: int = 90

    # Campaigns
    EVALUATE_CAMPAIGNS: bool = True
    DISPATCH_BATCH_SIZE: int = 50

    # Messaging gateway (dotted path to a MessagingGateway implementation)
    MESSAGING_BACKEND: str = ""
    MESSAGING_MAX_ATTEMPTS: int = 3
    MESSAGING_BACKOFF_BASE: float = 2.0
    MESSAGING_TIMEOUT: int = 30
    # Seconds a message may stay "sending" before dispatch takes it back
    MESSAGING_CLAIM_TIMEOUT: int = 600

    # Evolution WhatsApp API
    EVOLUTION_API_URL: str = ""
    EVOLUTION_API_KEY: str = ""
    EVOLUTION_INSTANCE: str = "default"

    # Scanner access links
    SCANNER_BASE_URL: str = "http://localhost:3000"
    SCANNER_TOKEN_BYTES: int = 24

    # Scanner request limits per client IP (None disables)
    SCANNER_VALIDATE_RATE: str | None = "10/min"
    SCANNER_RATE: str | None = "100/hour"

    # Owner surface: callable(request) -> business id or None
    OWNER_BUSINESS_RESOLVER: str = "stampman.views.resolve_owned_business"


def get_stampman_settings() -> StampmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STAMPMAN", {})
    return StampmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_stampman_settings(), name)


stampman_settings = _LazySettings()
