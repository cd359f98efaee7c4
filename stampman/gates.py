"""
Stampman Gates - Validation rules.

G1: StampQuantity - Grant quantity within [MIN_STAMP_QUANTITY, MAX_STAMP_QUANTITY]
G2: IdempotencyKey - Caller supplied a usable idempotency key
G3: ScannerTokenFormat - Token secret is well-formed before any lookup
G4: ScannerTokenLiveness - Token is active, unexpired, and its business active
G5: CustomerScope - Customer belongs to the acting business
"""

import re
from dataclasses import dataclass

from django.utils import timezone


class GateError(Exception):
    """Gate validation error."""

    def __init__(self, gate_name: str, message: str, details: dict | None = None):
        self.gate_name = gate_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{gate_name}] {message}")


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]{16,128}$")


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Stampman validation gates."""

    # =========================================================================
    # G1: Stamp Quantity
    # =========================================================================

    @classmethod
    def stamp_quantity(cls, quantity) -> GateResult:
        """
        G1: Quantity must be an integer within the configured bounds.

        Out-of-range values are rejected, never clamped.

        Raises:
            GateError: If quantity is not an int or out of range
        """
        from stampman.conf import stampman_settings

        low = stampman_settings.MIN_STAMP_QUANTITY
        high = stampman_settings.MAX_STAMP_QUANTITY

        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise GateError(
                "G1_StampQuantity",
                "Quantity must be an integer.",
                {"quantity": quantity, "min": low, "max": high},
            )

        if quantity < low or quantity > high:
            raise GateError(
                "G1_StampQuantity",
                f"Quantity must be between {low} and {high}.",
                {"quantity": quantity, "min": low, "max": high},
            )

        return GateResult(True, "G1_StampQuantity")

    @classmethod
    def check_stamp_quantity(cls, quantity) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.stamp_quantity(quantity)
            return True
        except GateError:
            return False

    # =========================================================================
    # G2: Idempotency Key
    # =========================================================================

    MAX_IDEMPOTENCY_KEY_LENGTH = 255

    @classmethod
    def idempotency_key(cls, key) -> GateResult:
        """
        G2: Key must be a non-blank string of at most 255 characters.

        Raises:
            GateError: If key is missing, blank, or too long
        """
        if not isinstance(key, str) or not key.strip():
            raise GateError(
                "G2_IdempotencyKey",
                "Idempotency key is required.",
            )

        if len(key) > cls.MAX_IDEMPOTENCY_KEY_LENGTH:
            raise GateError(
                "G2_IdempotencyKey",
                f"Idempotency key longer than {cls.MAX_IDEMPOTENCY_KEY_LENGTH} characters.",
                {"length": len(key)},
            )

        return GateResult(True, "G2_IdempotencyKey")

    @classmethod
    def check_idempotency_key(cls, key) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.idempotency_key(key)
            return True
        except GateError:
            return False

    # =========================================================================
    # G3: Scanner Token Format
    # =========================================================================

    @classmethod
    def scanner_token_format(cls, secret) -> GateResult:
        """
        G3: Secret must look like a generated token (URL-safe, 16-128 chars).

        Rejects garbage before it reaches the database.

        Raises:
            GateError: If the secret is malformed
        """
        if not isinstance(secret, str) or not _TOKEN_RE.match(secret):
            raise GateError(
                "G3_ScannerTokenFormat",
                "Malformed scanner token.",
                {"reason": "malformed"},
            )

        return GateResult(True, "G3_ScannerTokenFormat")

    @classmethod
    def check_scanner_token_format(cls, secret) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.scanner_token_format(secret)
            return True
        except GateError:
            return False

    # =========================================================================
    # G4: Scanner Token Liveness
    # =========================================================================

    @classmethod
    def scanner_token_liveness(cls, token, now=None) -> GateResult:
        """
        G4: Token is active, not expired, and its business is active.

        Expiry is evaluated here, at validation time; nothing sweeps
        expired tokens in the background.

        Args:
            token: ScannerToken instance (business loaded)
            now: Reference time (defaults to timezone.now())

        Raises:
            GateError: With details["reason"] in revoked/expired/business_inactive
        """
        now = now or timezone.now()

        if not token.is_active:
            raise GateError(
                "G4_ScannerTokenLiveness",
                "Token revoked.",
                {"reason": "revoked", "token_id": str(token.pk)},
            )

        if token.is_expired(now):
            raise GateError(
                "G4_ScannerTokenLiveness",
                "Token expired.",
                {"reason": "expired", "token_id": str(token.pk)},
            )

        if not token.business.is_active:
            raise GateError(
                "G4_ScannerTokenLiveness",
                "Business inactive.",
                {"reason": "business_inactive", "token_id": str(token.pk)},
            )

        return GateResult(True, "G4_ScannerTokenLiveness")

    @classmethod
    def check_scanner_token_liveness(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.scanner_token_liveness(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # G5: Customer Scope
    # =========================================================================

    @classmethod
    def customer_scope(cls, customer, business_id) -> GateResult:
        """
        G5: Customer must belong to the business performing the operation.

        Raises:
            GateError: If the customer belongs to another business
        """
        if str(customer.business_id) != str(business_id):
            raise GateError(
                "G5_CustomerScope",
                "Customer does not belong to this business.",
                {"customer_id": str(customer.pk), "business_id": str(business_id)},
            )

        return GateResult(True, "G5_CustomerScope")

    @classmethod
    def check_customer_scope(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.customer_scope(*args, **kwargs)
            return True
        except GateError:
            return False
