"""Business and enrollment service.

Threshold changes never rescale existing progress: a customer keeps their
stamps_count, and the next grant unlocks against the new threshold.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import transaction

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.models import Business, BusinessLocation, Customer, RewardUnlockEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CardState:
    """Read model for the presentation layer."""

    customer_id: str
    customer_name: str
    business_id: str
    business_name: str
    stamps_count: int
    stamps_required: int
    stamps_remaining: int
    reward_description: str
    total_rewards_earned: int
    outstanding_rewards: int
    last_stamp_at: datetime | None


def get_business(business_id, active_only: bool = True) -> Business:
    """
    Raises:
        StampmanError: BUSINESS_NOT_FOUND, BUSINESS_INACTIVE
    """
    try:
        business = Business.objects.get(pk=business_id)
    except (Business.DoesNotExist, ValidationError, ValueError):
        raise StampmanError("BUSINESS_NOT_FOUND", business_id=str(business_id))
    if active_only and not business.is_active:
        raise StampmanError("BUSINESS_INACTIVE", business_id=str(business_id))
    return business


def create_business(
    name: str,
    stamps_required: int | None = None,
    reward_description: str = "",
    owner=None,
) -> Business:
    """Create a business with its reward structure."""
    if stamps_required is None:
        stamps_required = stampman_settings.DEFAULT_STAMPS_REQUIRED
    _check_threshold(stamps_required)
    return Business.objects.create(
        name=name,
        stamps_required=stamps_required,
        reward_description=reward_description,
        owner=owner,
    )


def set_reward(
    business_id,
    stamps_required: int | None = None,
    reward_description: str | None = None,
) -> Business:
    """Update the reward structure. Existing stamps_count values are left as-is."""
    business = get_business(business_id, active_only=False)
    fields = []
    if stamps_required is not None:
        _check_threshold(stamps_required)
        if stamps_required != business.stamps_required:
            logger.info(
                "Threshold changed: business=%s %d -> %d",
                business.pk,
                business.stamps_required,
                stamps_required,
            )
        business.stamps_required = stamps_required
        fields.append("stamps_required")
    if reward_description is not None:
        business.reward_description = reward_description
        fields.append("reward_description")
    if fields:
        business.save(update_fields=fields + ["updated_at"])
    return business


def _check_threshold(stamps_required) -> None:
    if not isinstance(stamps_required, int) or isinstance(stamps_required, bool) or stamps_required < 1:
        raise StampmanError("INVALID_THRESHOLD", stamps_required=stamps_required)


def add_location(business_id, name: str) -> BusinessLocation:
    business = get_business(business_id, active_only=False)
    return BusinessLocation.objects.create(business=business, name=name)


def enroll(business_id, name: str, phone: str = "") -> Customer:
    """
    Enroll a customer in the business's stamp card program.

    Raises:
        StampmanError: BUSINESS_NOT_FOUND, BUSINESS_INACTIVE
    """
    business = get_business(business_id)
    with transaction.atomic():
        customer = Customer.objects.create(
            business=business,
            name=name,
            phone="".join(ch for ch in phone if ch.isdigit() or ch == "+"),
        )
    logger.info("Customer enrolled: business=%s customer=%s", business.pk, customer.pk)
    return customer


def get_customer(customer_id, business_id=None) -> Customer:
    """
    Raises:
        StampmanError: CUSTOMER_NOT_FOUND
    """
    qs = Customer.objects.select_related("business").filter(is_active=True)
    if business_id is not None:
        qs = qs.filter(business_id=business_id)
    try:
        return qs.get(pk=customer_id)
    except (Customer.DoesNotExist, ValidationError, ValueError):
        raise StampmanError("CUSTOMER_NOT_FOUND", customer_id=str(customer_id))


def card_state(customer_id, business_id=None) -> CardState:
    customer = get_customer(customer_id, business_id)
    business = customer.business
    outstanding = RewardUnlockEvent.objects.filter(
        customer=customer,
        redeemed_at__isnull=True,
    ).count()
    return CardState(
        customer_id=str(customer.pk),
        customer_name=customer.name,
        business_id=str(business.pk),
        business_name=business.name,
        stamps_count=customer.stamps_count,
        stamps_required=business.stamps_required,
        stamps_remaining=customer.stamps_remaining,
        reward_description=business.reward_description,
        total_rewards_earned=customer.total_rewards_earned,
        outstanding_rewards=outstanding,
        last_stamp_at=customer.last_stamp_at,
    )
