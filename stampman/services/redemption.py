"""Redemption processor - consumes unlocked rewards exactly once."""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from stampman.exceptions import StampmanError
from stampman.models import RedemptionRecord, RewardUnlockEvent, StampLedgerEntry
from stampman.services.stamps import lock_customer

logger = logging.getLogger(__name__)


def redeem(
    customer_id,
    actor: str,
    business_id=None,
    unlock_event_id=None,
) -> RedemptionRecord:
    """
    Redeem an unlocked reward.

    Consumes ``unlock_event_id`` if given, otherwise the customer's oldest
    outstanding unlock event. stamps_count is not touched: the threshold was
    already subtracted when the reward unlocked.

    Args:
        customer_id: Customer id
        actor: Who redeemed (user:<id> or scanner:<token id>)
        business_id: Acting business; the customer must belong to it
        unlock_event_id: Specific unlock event to consume

    Returns:
        Created RedemptionRecord

    Raises:
        StampmanError: ALREADY_REDEEMED if the given event was consumed, or
            if the last redemption is the latest card activity (a repeated
            redeem). NO_REWARD_AVAILABLE otherwise
    """
    with transaction.atomic():
        customer = lock_customer(customer_id, business_id)

        if unlock_event_id is not None:
            event = _get_event(customer, unlock_event_id)
        else:
            event = (
                RewardUnlockEvent.objects
                .filter(customer=customer, redeemed_at__isnull=True)
                .order_by("unlocked_at", "id")
                .first()
            )
            if event is None:
                raise _nothing_outstanding(customer)

        now = timezone.now()
        claimed = RewardUnlockEvent.objects.filter(
            pk=event.pk,
            redeemed_at__isnull=True,
        ).update(redeemed_at=now)
        if not claimed:
            raise StampmanError(
                "ALREADY_REDEEMED",
                customer_id=str(customer.pk),
                unlock_event_id=event.pk,
            )

        record = RedemptionRecord.objects.create(
            unlock_event=event,
            customer=customer,
            business_id=customer.business_id,
            actor=actor,
            stamps_at_redemption=customer.stamps_count,
        )

    logger.info(
        "Reward redeemed: customer=%s unlock_event=%s actor=%s",
        customer.pk,
        event.pk,
        actor,
    )
    return record


def _nothing_outstanding(customer) -> StampmanError:
    last = (
        RewardUnlockEvent.objects
        .filter(customer=customer, redeemed_at__isnull=False)
        .order_by("-redeemed_at", "-id")
        .first()
    )
    if last is not None:
        stamped_since = StampLedgerEntry.objects.filter(
            customer=customer,
            created_at__gt=last.redeemed_at,
        ).exists()
        if not stamped_since:
            return StampmanError(
                "ALREADY_REDEEMED",
                customer_id=str(customer.pk),
                unlock_event_id=last.pk,
            )
    return StampmanError("NO_REWARD_AVAILABLE", customer_id=str(customer.pk))


def _get_event(customer, unlock_event_id) -> RewardUnlockEvent:
    try:
        return RewardUnlockEvent.objects.get(pk=unlock_event_id, customer=customer)
    except (RewardUnlockEvent.DoesNotExist, ValidationError, ValueError):
        raise StampmanError(
            "NO_REWARD_AVAILABLE",
            customer_id=str(customer.pk),
            unlock_event_id=unlock_event_id,
        )


def get_redemptions(customer_id, limit: int = 50) -> list[RedemptionRecord]:
    """Redemption history for a customer, most recent first."""
    return list(
        RedemptionRecord.objects
        .filter(customer_id=customer_id)
        .select_related("unlock_event")[:limit]
    )
