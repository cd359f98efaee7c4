"""Scanner access - scoped, revocable tokens for the public scanner surface.

validate() never tells the caller why a token failed. Malformed, unknown,
revoked, expired and inactive-business tokens all raise INVALID_TOKEN; the
real reason only goes to the log.
"""

import logging
import secrets
from dataclasses import dataclass

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.gates import GateError, Gates
from stampman.models import Business, BusinessLocation, ScannerToken
from stampman.models.scanner_token import hash_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScannerAccess:
    """What a valid scanner token grants."""

    token_id: str
    business_id: str
    business_name: str
    location_name: str | None
    stamps_required: int
    reward_description: str

    @property
    def actor(self) -> str:
        return f"scanner:{self.token_id}"


def create_token(
    business_id,
    name: str,
    location_id=None,
    expires_at=None,
    created_by: str = "",
) -> tuple[ScannerToken, str]:
    """
    Create a scanner token.

    Returns:
        Tuple of (ScannerToken, raw secret). The secret is not stored and
        cannot be recovered later.

    Raises:
        StampmanError: BUSINESS_NOT_FOUND
    """
    try:
        business = Business.objects.get(pk=business_id)
    except (Business.DoesNotExist, ValidationError, ValueError):
        raise StampmanError("BUSINESS_NOT_FOUND", business_id=str(business_id))

    location = None
    if location_id is not None:
        location = BusinessLocation.objects.filter(pk=location_id, business=business).first()
        if location is None:
            raise StampmanError("BUSINESS_NOT_FOUND", location_id=str(location_id))

    secret = secrets.token_urlsafe(stampman_settings.SCANNER_TOKEN_BYTES)
    token = ScannerToken.objects.create(
        business=business,
        location=location,
        name=name,
        token_hash=hash_token(secret),
        token_prefix=secret[:8],
        expires_at=expires_at,
        created_by=created_by,
    )
    logger.info("Scanner token created: business=%s token=%s", business.pk, token.pk)
    return token, secret


def access_url(secret: str) -> str:
    """Link opened on the scanning device."""
    return f"{stampman_settings.SCANNER_BASE_URL.rstrip('/')}/scan/{secret}"


def validate(secret: str, now=None) -> ScannerAccess:
    """
    Validate a scanner token secret and record its usage.

    Usage recording (usage_count, last_used_at) is best-effort: a failure is
    logged and the validation still succeeds.

    Raises:
        StampmanError: INVALID_TOKEN (generic, whatever the cause)
    """
    try:
        Gates.scanner_token_format(secret)
    except GateError:
        logger.debug("Scanner token rejected: malformed")
        raise StampmanError("INVALID_TOKEN")

    token = (
        ScannerToken.objects
        .select_related("business", "location")
        .filter(token_hash=hash_token(secret))
        .first()
    )
    if token is None:
        logger.debug("Scanner token rejected: not_found")
        raise StampmanError("INVALID_TOKEN")

    try:
        Gates.scanner_token_liveness(token, now=now)
    except GateError as exc:
        logger.info(
            "Scanner token rejected: token=%s reason=%s",
            token.pk,
            exc.details.get("reason"),
        )
        raise StampmanError("INVALID_TOKEN")

    record_usage(token)

    return ScannerAccess(
        token_id=str(token.pk),
        business_id=str(token.business_id),
        business_name=token.business.name,
        location_name=token.location_name,
        stamps_required=token.business.stamps_required,
        reward_description=token.business.reward_description,
    )


def record_usage(token: ScannerToken) -> bool:
    """Increment usage counters. Returns False (never raises) on failure."""
    try:
        with transaction.atomic():
            ScannerToken.objects.filter(pk=token.pk).update(
                usage_count=F("usage_count") + 1,
                last_used_at=timezone.now(),
            )
    except DatabaseError:
        logger.exception("Failed to record scanner token usage: token=%s", token.pk)
        return False
    return True


def _get_owned_token(business_id, token_id) -> ScannerToken:
    try:
        return ScannerToken.objects.get(pk=token_id, business_id=business_id)
    except (ScannerToken.DoesNotExist, ValidationError, ValueError):
        raise StampmanError("TOKEN_NOT_FOUND", token_id=str(token_id))


def revoke(business_id, token_id) -> ScannerToken:
    """Revoke a token. It stays revoked until reactivate() is called."""
    token = _get_owned_token(business_id, token_id)
    if token.is_active:
        token.is_active = False
        token.save(update_fields=["is_active"])
        logger.info("Scanner token revoked: token=%s", token.pk)
    return token


def reactivate(business_id, token_id) -> ScannerToken:
    """Explicitly re-enable a revoked token. Expiry is not reset."""
    token = _get_owned_token(business_id, token_id)
    if not token.is_active:
        token.is_active = True
        token.save(update_fields=["is_active"])
        logger.info("Scanner token reactivated: token=%s", token.pk)
    return token


def delete(business_id, token_id) -> None:
    token = _get_owned_token(business_id, token_id)
    token.delete()
    logger.info("Scanner token deleted: token=%s", token_id)


def list_tokens(business_id) -> list[ScannerToken]:
    return list(
        ScannerToken.objects
        .filter(business_id=business_id)
        .select_related("location")
    )
