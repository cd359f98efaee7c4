"""
Stampman public API.

CORE (engine):
    StampService.stamp(...)           - Guarded stamp grant (owner channel)
    StampService.redeem(...)          - Redeem an unlocked reward (owner channel)
    StampService.validate_scanner(s)  - Scanner Access Gate
    StampService.scanner_stamp(...)   - Guarded stamp grant (scanner channel)
    StampService.scanner_redeem(...)  - Redeem (scanner channel)

CONVENIENCE (helpers):
    StampService.enroll(...)          - Enroll a customer
    StampService.card(customer_id)    - Card state for presentation
    StampService.history(customer_id) - Ledger entries
"""

import logging

from django.db import DatabaseError

from stampman import signals
from stampman.exceptions import StampmanError
from stampman.models import Customer, RedemptionRecord, RewardUnlockEvent, StampLedgerEntry
from stampman.services import business as business_service
from stampman.services import idempotency, redemption, scanner, stamps
from stampman.services.business import CardState
from stampman.services.scanner import ScannerAccess
from stampman.services.stamps import StampGrant

logger = logging.getLogger(__name__)


class StampService:
    """
    Stampman public API.

    Uses @classmethod for extensibility.

    Every inbound stamp goes: channel check (owner business or scanner
    token) -> idempotency guard -> ledger/unlock transaction -> signals.
    Signals feed the campaign evaluator; replays emit nothing.
    """

    # ======================================================================
    # CORE API
    # ======================================================================

    @classmethod
    def stamp(
        cls,
        business_id,
        customer_id,
        quantity: int,
        idempotency_key: str,
        actor: str = "owner",
    ) -> StampGrant:
        """
        Grant stamps through the owner-authenticated channel.

        Args:
            business_id: Business resolved from the owner's credential
            customer_id: Customer id (must belong to the business)
            quantity: 1..MAX_STAMP_QUANTITY
            idempotency_key: Caller-supplied key for this physical transaction
            actor: Audit label (user:<id>)

        Returns:
            StampGrant (replayed=True when the key was already applied; the
            original result is returned unchanged)

        Raises:
            StampmanError: See services.stamps.grant_stamps, plus
                BUSINESS_NOT_FOUND, IDEMPOTENCY_KEY_REQUIRED, STORAGE_UNAVAILABLE
        """
        business_service.get_business(business_id)
        return cls._guarded_grant(business_id, customer_id, quantity, idempotency_key, actor)

    @classmethod
    def redeem(
        cls,
        business_id,
        customer_id,
        actor: str = "owner",
        unlock_event_id=None,
    ) -> RedemptionRecord:
        """
        Redeem the customer's oldest outstanding reward (or the given one).

        Raises:
            StampmanError: NO_REWARD_AVAILABLE, ALREADY_REDEEMED,
                CUSTOMER_NOT_FOUND, BUSINESS_MISMATCH, STORAGE_UNAVAILABLE
        """
        business_service.get_business(business_id)
        try:
            record = redemption.redeem(
                customer_id,
                actor,
                business_id=business_id,
                unlock_event_id=unlock_event_id,
            )
        except DatabaseError as exc:
            logger.exception("Redemption failed on storage: customer=%s", customer_id)
            raise StampmanError("STORAGE_UNAVAILABLE") from exc

        signals.reward_redeemed.send(sender=Customer, customer=record.customer, record=record)
        return record

    @classmethod
    def validate_scanner(cls, token_secret: str) -> ScannerAccess:
        """Validate a scanner token. Raises StampmanError("INVALID_TOKEN")."""
        return scanner.validate(token_secret)

    @classmethod
    def scanner_stamp(
        cls,
        token_secret: str,
        customer_id,
        quantity: int,
        idempotency_key: str,
    ) -> StampGrant:
        """Grant stamps through the public scanner channel."""
        access = scanner.validate(token_secret)
        return cls._guarded_grant(
            access.business_id,
            customer_id,
            quantity,
            idempotency_key,
            access.actor,
        )

    @classmethod
    def scanner_redeem(cls, token_secret: str, customer_id) -> RedemptionRecord:
        """Redeem through the public scanner channel."""
        access = scanner.validate(token_secret)
        return cls.redeem(access.business_id, customer_id, actor=access.actor)

    @classmethod
    def _guarded_grant(cls, business_id, customer_id, quantity, idempotency_key, actor) -> StampGrant:
        def operation() -> dict:
            return stamps.grant_stamps(
                customer_id,
                quantity,
                actor,
                idempotency_key,
                business_id=business_id,
            ).as_dict()

        try:
            outcome = idempotency.apply(business_id, idempotency_key, operation, name="stamp")
        except DatabaseError as exc:
            logger.exception("Stamp grant failed on storage: customer=%s", customer_id)
            raise StampmanError("STORAGE_UNAVAILABLE") from exc

        grant = StampGrant.from_dict(
            outcome.result,
            replayed=outcome.replayed or outcome.result.get("replayed", False),
        )
        if not grant.replayed:
            cls._publish_grant(grant)
        return grant

    @classmethod
    def _publish_grant(cls, grant: StampGrant) -> None:
        customer = Customer.objects.select_related("business").get(pk=grant.customer_id)
        signals.stamps_granted.send(sender=Customer, customer=customer, grant=grant)

        if grant.unlock_event_ids:
            events = RewardUnlockEvent.objects.filter(pk__in=grant.unlock_event_ids).order_by("id")
            for event in events:
                signals.reward_unlocked.send(sender=Customer, customer=customer, unlock_event=event)

    # ======================================================================
    # CONVENIENCE API
    # ======================================================================

    @classmethod
    def enroll(cls, business_id, name: str, phone: str = "") -> Customer:
        """Enroll a customer and emit customer_enrolled."""
        customer = business_service.enroll(business_id, name, phone=phone)
        signals.customer_enrolled.send(sender=Customer, customer=customer)
        return customer

    @classmethod
    def card(cls, customer_id, business_id=None) -> CardState:
        """Card state for the presentation layer."""
        return business_service.card_state(customer_id, business_id)

    @classmethod
    def history(cls, customer_id, limit: int = 50) -> list[StampLedgerEntry]:
        """Ledger entries, most recent first."""
        return stamps.get_history(customer_id, limit=limit)
