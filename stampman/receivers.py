"""Signal receivers that feed customer events to the campaign evaluator.

Messaging is best-effort relative to the card: an evaluation failure is
logged and never reaches the stamp or enrollment caller.
"""

import logging

from stampman import signals
from stampman.conf import stampman_settings
from stampman.triggers import CustomerEnrolled, RewardUnlocked, StampsGranted

logger = logging.getLogger(__name__)


def _evaluate(customer, event) -> None:
    if not stampman_settings.EVALUATE_CAMPAIGNS:
        return

    from stampman.services import campaigns

    try:
        campaigns.evaluate(customer.business_id, customer.pk, event)
    except Exception:
        logger.exception(
            "Campaign evaluation failed: customer=%s event=%s",
            customer.pk,
            event.event_id,
        )


def on_customer_enrolled(sender, customer, **kwargs):
    _evaluate(customer, CustomerEnrolled(event_id=f"enroll:{customer.pk}"))


def on_stamps_granted(sender, customer, grant, **kwargs):
    _evaluate(
        customer,
        StampsGranted(
            event_id=f"ledger:{grant.entry_id}",
            new_count=grant.stamps_count,
            quantity=grant.quantity,
        ),
    )


def on_reward_unlocked(sender, customer, unlock_event, **kwargs):
    _evaluate(
        customer,
        RewardUnlocked(
            event_id=f"unlock:{unlock_event.pk}",
            reward_description=unlock_event.reward_description,
        ),
    )


def connect() -> None:
    signals.customer_enrolled.connect(on_customer_enrolled, dispatch_uid="stampman.campaigns.enrolled")
    signals.stamps_granted.connect(on_stamps_granted, dispatch_uid="stampman.campaigns.stamps")
    signals.reward_unlocked.connect(on_reward_unlocked, dispatch_uid="stampman.campaigns.unlocked")
