"""Stamp ledger and reward unlock evaluation.

grant_stamps() is the only writer of Customer.stamps_count. Each grant is
one transaction: lock the card, append the ledger entry, emit unlock events
for every full threshold crossed (carry-over), and write the card back with
a version check. A version miss rolls the whole attempt back and retries.
"""

import logging
from dataclasses import asdict, dataclass, field

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.gates import GateError, Gates
from stampman.models import Customer, RewardUnlockEvent, StampLedgerEntry

logger = logging.getLogger(__name__)


class StaleCardError(Exception):
    """The card changed between read and write (version mismatch)."""


@dataclass(frozen=True)
class StampGrant:
    """Outcome of a stamp grant. Stored verbatim for idempotent replays."""

    customer_id: str
    business_id: str
    entry_id: int
    quantity: int
    stamps_before: int
    stamps_count: int
    rewards_unlocked: int
    total_rewards_earned: int
    unlock_event_ids: list[int] = field(default_factory=list)
    replayed: bool = False

    def as_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict, replayed: bool = False) -> "StampGrant":
        values = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        values["replayed"] = replayed
        return cls(**values)


def lock_customer(customer_id, business_id=None) -> Customer:
    """
    Get an active customer with a row-level lock on the card.

    MUST be called inside transaction.atomic().

    Raises:
        StampmanError: CUSTOMER_NOT_FOUND, BUSINESS_MISMATCH, BUSINESS_INACTIVE
    """
    try:
        customer = (
            Customer.objects
            .select_for_update(of=("self",))
            .select_related("business")
            .get(pk=customer_id, is_active=True)
        )
    except (Customer.DoesNotExist, ValidationError, ValueError):
        raise StampmanError("CUSTOMER_NOT_FOUND", customer_id=str(customer_id))

    if business_id is not None:
        try:
            Gates.customer_scope(customer, business_id)
        except GateError as exc:
            raise StampmanError("BUSINESS_MISMATCH", **exc.details)

    if not customer.business.is_active:
        raise StampmanError("BUSINESS_INACTIVE", business_id=str(customer.business_id))

    return customer


def grant_stamps(
    customer_id,
    quantity: int,
    actor: str,
    idempotency_key: str,
    business_id=None,
) -> StampGrant:
    """
    Grant ``quantity`` stamps and unlock every reward the batch completes.

    With threshold t and current count c, the grant unlocks (c + q) // t
    rewards and leaves (c + q) % t stamps.

    Args:
        customer_id: Customer id
        quantity: Stamps to grant, 1..MAX_STAMP_QUANTITY
        actor: Who granted (user:<id> or scanner:<token id>)
        idempotency_key: Stored on the ledger entry (unique per business)
        business_id: Acting business; the customer must belong to it

    Returns:
        StampGrant. If the ledger already holds the key, the original
        grant is rebuilt from it with replayed=True and nothing is written.

    Raises:
        StampmanError: INVALID_QUANTITY, CUSTOMER_NOT_FOUND, BUSINESS_MISMATCH,
            BUSINESS_INACTIVE, INVALID_THRESHOLD, CONTENTION
    """
    try:
        Gates.stamp_quantity(quantity)
    except GateError as exc:
        raise StampmanError("INVALID_QUANTITY", message=exc.message, **exc.details)

    attempts = 1 + max(0, stampman_settings.CONTENTION_RETRIES)
    for attempt in range(1, attempts + 1):
        try:
            return _apply_grant(customer_id, quantity, actor, idempotency_key, business_id)
        except StaleCardError:
            logger.warning(
                "Stamp grant contention: customer=%s attempt=%d/%d",
                customer_id,
                attempt,
                attempts,
            )

    raise StampmanError("CONTENTION", customer_id=str(customer_id), attempts=attempts)


def _apply_grant(customer_id, quantity, actor, idempotency_key, business_id) -> StampGrant:
    with transaction.atomic():
        customer = lock_customer(customer_id, business_id)
        business = customer.business

        # The guard row may be gone (cleanup) while the ledger still holds the key
        applied = (
            StampLedgerEntry.objects
            .filter(business=business, idempotency_key=idempotency_key)
            .first()
        )
        if applied is not None:
            logger.info(
                "Ledger replay: business=%s key=%s entry=%s",
                business.pk,
                idempotency_key,
                applied.pk,
            )
            return grant_from_entry(applied, replayed=True)

        threshold = business.stamps_required
        if threshold < 1:
            raise StampmanError("INVALID_THRESHOLD", business_id=str(business.pk))

        before = customer.stamps_count
        rewards, remainder = divmod(before + quantity, threshold)
        total_rewards = customer.total_rewards_earned + rewards
        now = timezone.now()

        updated = Customer.objects.filter(
            pk=customer.pk,
            version=customer.version,
        ).update(
            stamps_count=remainder,
            total_rewards_earned=total_rewards,
            last_stamp_at=now,
            version=customer.version + 1,
        )
        if updated != 1:
            raise StaleCardError(customer.pk)

        entry = StampLedgerEntry.objects.create(
            customer=customer,
            business=business,
            quantity=quantity,
            idempotency_key=idempotency_key,
            stamps_before=before,
            stamps_after=remainder,
            rewards_unlocked=rewards,
            actor=actor,
        )

        unlock_ids = []
        for _ in range(rewards):
            event = RewardUnlockEvent.objects.create(
                customer=customer,
                business=business,
                source_entry=entry,
                reward_description=business.reward_description,
            )
            unlock_ids.append(event.pk)

    if rewards:
        logger.info(
            "Rewards unlocked: customer=%s count=%d entry=%s",
            customer.pk,
            rewards,
            entry.pk,
        )

    return StampGrant(
        customer_id=str(customer.pk),
        business_id=str(business.pk),
        entry_id=entry.pk,
        quantity=quantity,
        stamps_before=before,
        stamps_count=remainder,
        rewards_unlocked=rewards,
        total_rewards_earned=total_rewards,
        unlock_event_ids=unlock_ids,
    )


def grant_from_entry(entry: StampLedgerEntry, replayed: bool = False) -> StampGrant:
    """Rebuild the StampGrant of an applied ledger entry."""
    unlock_ids = list(entry.unlock_events.order_by("id").values_list("id", flat=True))
    total_rewards = RewardUnlockEvent.objects.filter(
        customer_id=entry.customer_id,
        source_entry_id__lte=entry.pk,
    ).count()
    return StampGrant(
        customer_id=str(entry.customer_id),
        business_id=str(entry.business_id),
        entry_id=entry.pk,
        quantity=entry.quantity,
        stamps_before=entry.stamps_before,
        stamps_count=entry.stamps_after,
        rewards_unlocked=entry.rewards_unlocked,
        total_rewards_earned=total_rewards,
        unlock_event_ids=unlock_ids,
        replayed=replayed,
    )


def get_history(customer_id, limit: int = 50) -> list[StampLedgerEntry]:
    """Get ledger entries for a customer, most recent first."""
    return list(
        StampLedgerEntry.objects.filter(customer_id=customer_id)[:limit]
    )


def outstanding_rewards(customer_id) -> list[RewardUnlockEvent]:
    """Unredeemed unlock events, oldest first."""
    return list(
        RewardUnlockEvent.objects.filter(
            customer_id=customer_id,
            redeemed_at__isnull=True,
        ).order_by("unlocked_at", "id")
    )
