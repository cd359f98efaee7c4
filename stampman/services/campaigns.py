"""Campaign trigger evaluation, message rendering and dispatch.

Evaluation is idempotent: before a message is scheduled, a CampaignFiring
row keyed by (campaign, customer, event_id) is inserted in a savepoint. A
conflict means this exact event already fired this campaign, so the same
event can be delivered any number of times.

Dispatch is separate from evaluation. Gateway failures only touch the
message row and the campaign counters, never card state.
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import timedelta

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.module_loading import import_string

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.models import (
    Business,
    Campaign,
    CampaignFiring,
    CampaignStatus,
    Customer,
    MessageStatus,
    ScheduledMessage,
    TriggerType,
)
from stampman.protocols.messaging import GatewayError, MessagingGateway
from stampman.triggers import (
    CustomerEnrolled,
    InactivityCheck,
    RewardUnlocked,
    StampsGranted,
    parse_trigger,
)

logger = logging.getLogger(__name__)


# Trigger types worth loading for each event class
_CANDIDATE_TRIGGERS = {
    CustomerEnrolled: [TriggerType.CUSTOMER_ENROLLED],
    StampsGranted: [TriggerType.STAMPS_REACHED, TriggerType.STAMP_EARNED],
    RewardUnlocked: [TriggerType.REWARD_UNLOCKED],
    InactivityCheck: [TriggerType.DAYS_INACTIVE],
}

_STATUS_TRANSITIONS = {
    CampaignStatus.DRAFT: {CampaignStatus.ACTIVE},
    CampaignStatus.ACTIVE: {CampaignStatus.PAUSED, CampaignStatus.COMPLETED},
    CampaignStatus.PAUSED: {CampaignStatus.ACTIVE, CampaignStatus.COMPLETED},
    CampaignStatus.COMPLETED: set(),
}

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


# =============================================================================
# Campaign management
# =============================================================================


def create_campaign(
    business_id,
    name: str,
    trigger_type: str,
    message_template: str,
    trigger_config: dict | None = None,
    status: str = CampaignStatus.DRAFT,
) -> Campaign:
    """
    Create a campaign after validating its trigger.

    Raises:
        StampmanError: BUSINESS_NOT_FOUND, INVALID_TRIGGER_CONFIG
    """
    if not Business.objects.filter(pk=business_id).exists():
        raise StampmanError("BUSINESS_NOT_FOUND", business_id=str(business_id))

    trigger_config = trigger_config or {}
    parse_trigger(trigger_type, trigger_config)

    return Campaign.objects.create(
        business_id=business_id,
        name=name,
        trigger_type=trigger_type,
        trigger_config=trigger_config,
        message_template=message_template,
        status=status,
    )


def set_status(business_id, campaign_id, status: str) -> Campaign:
    """
    Move a campaign through draft -> active <-> paused -> completed.

    Raises:
        StampmanError: CAMPAIGN_NOT_FOUND, INVALID_STATUS_TRANSITION
    """
    try:
        campaign = Campaign.objects.get(pk=campaign_id, business_id=business_id)
    except (Campaign.DoesNotExist, ValidationError, ValueError):
        raise StampmanError("CAMPAIGN_NOT_FOUND", campaign_id=str(campaign_id))

    if status == campaign.status:
        return campaign

    if status not in _STATUS_TRANSITIONS.get(campaign.status, set()):
        raise StampmanError(
            "INVALID_STATUS_TRANSITION",
            current=campaign.status,
            requested=status,
        )

    campaign.status = status
    campaign.save(update_fields=["status", "updated_at"])
    return campaign


# =============================================================================
# Rendering
# =============================================================================


def render_message(template: str, variables: dict) -> str:
    """
    Substitute {placeholders} in ``template``.

    Unknown placeholders, and variables that are None or empty, keep their
    literal ``{name}`` text instead of failing the send.
    """

    def _replace(match):
        value = variables.get(match.group(1))
        if value is None or value == "":
            return match.group(0)
        return str(value)

    return _PLACEHOLDER_RE.sub(_replace, template)


def build_variables(customer: Customer, event, now=None) -> dict:
    """Spanish and English variable names for a customer event."""
    business = customer.business

    if isinstance(event, StampsGranted):
        stamps = event.new_count
    else:
        stamps = customer.stamps_count

    reward = business.reward_description
    if isinstance(event, RewardUnlocked) and event.reward_description:
        reward = event.reward_description

    if isinstance(event, InactivityCheck):
        days = event.days_since_last_stamp
    elif customer.last_stamp_at:
        days = ((now or timezone.now()) - customer.last_stamp_at).days
    else:
        days = None

    missing = max(0, business.stamps_required - stamps)

    return {
        "nombre": customer.name,
        "name": customer.name,
        "sellos": stamps,
        "stamps": stamps,
        "sellos_faltantes": missing,
        "recompensa": reward,
        "reward": reward,
        "negocio": business.name,
        "business": business.name,
        "dias_inactivo": days,
    }


# =============================================================================
# Evaluation
# =============================================================================


def evaluate(business_id, customer_id, event) -> list[ScheduledMessage]:
    """
    Fire every active campaign of the business that matches ``event``.

    Args:
        business_id: Business whose campaigns are evaluated
        customer_id: Customer the event happened to
        event: CustomerEnrolled | StampsGranted | RewardUnlocked | InactivityCheck

    Returns:
        Messages scheduled by this call (empty on a redelivered event)

    Raises:
        StampmanError: CUSTOMER_NOT_FOUND
    """
    customer = (
        Customer.objects
        .select_related("business")
        .filter(pk=customer_id, business_id=business_id)
        .first()
    )
    if customer is None:
        raise StampmanError("CUSTOMER_NOT_FOUND", customer_id=str(customer_id))

    candidate_types = _CANDIDATE_TRIGGERS.get(type(event))
    if not candidate_types:
        raise TypeError(f"Unsupported campaign event: {event!r}")

    campaigns = Campaign.objects.filter(
        business_id=business_id,
        status=CampaignStatus.ACTIVE,
        trigger_type__in=candidate_types,
    ).order_by("created_at")

    variables = None
    scheduled = []
    for campaign in campaigns:
        try:
            trigger = campaign.trigger
        except StampmanError:
            logger.warning("Campaign %s has an invalid trigger config, skipped", campaign.pk)
            continue

        if not trigger.matches(event):
            continue

        if variables is None:
            variables = build_variables(customer, event)

        message = _fire(campaign, customer, event.event_id, variables)
        if message is not None:
            scheduled.append(message)

    return scheduled


def _fire(campaign, customer, event_id, variables) -> ScheduledMessage | None:
    try:
        with transaction.atomic():
            firing = CampaignFiring.objects.create(
                campaign=campaign,
                customer=customer,
                fired_for_event_id=event_id,
            )
            if not customer.phone:
                logger.warning(
                    "Campaign %s fired for customer %s without phone, no message",
                    campaign.pk,
                    customer.pk,
                )
                return None
            message = ScheduledMessage.objects.create(
                firing=firing,
                campaign=campaign,
                customer=customer,
                recipient_phone=customer.phone,
                body=render_message(campaign.message_template, variables),
            )
    except IntegrityError:
        logger.debug(
            "Campaign %s already fired: customer=%s event=%s",
            campaign.pk,
            customer.pk,
            event_id,
        )
        return None

    logger.info(
        "Campaign %s scheduled message %s: customer=%s event=%s",
        campaign.pk,
        message.pk,
        customer.pk,
        event_id,
    )
    return message


def inactivity_event_id(customer: Customer, days: int) -> str:
    """Stable id: one inactivity event per (customer, last stamp day, days)."""
    last_day = timezone.localdate(customer.last_stamp_at)
    return f"inactive:{customer.pk}:{last_day.isoformat()}:{days}"


def scan_inactive(now=None) -> int:
    """
    Per-customer decision for the periodic inactivity scan.

    For each business with active days_inactive campaigns, evaluates an
    InactivityCheck for customers whose last stamp fell exactly N days
    before today. Customers who never got a stamp are not considered.

    Returns:
        Number of messages scheduled
    """
    now = now or timezone.now()
    today = timezone.localdate(now)

    thresholds = defaultdict(set)
    rows = Campaign.objects.filter(
        status=CampaignStatus.ACTIVE,
        trigger_type=TriggerType.DAYS_INACTIVE,
        business__is_active=True,
    ).values_list("business_id", "trigger_config")
    for business_id, config in rows:
        value = (config or {}).get("value")
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            thresholds[business_id].add(value)

    scheduled = 0
    for business_id, days_set in thresholds.items():
        for days in sorted(days_set):
            target_day = today - timedelta(days=days)
            customers = Customer.objects.filter(
                business_id=business_id,
                is_active=True,
                last_stamp_at__date=target_day,
            )
            for customer in customers.iterator():
                event = InactivityCheck(
                    event_id=inactivity_event_id(customer, days),
                    days_since_last_stamp=days,
                )
                scheduled += len(evaluate(business_id, customer.pk, event))

    logger.info("Inactivity scan scheduled %d messages", scheduled)
    return scheduled


# =============================================================================
# Dispatch
# =============================================================================


@dataclass
class DispatchReport:
    sent: int = 0
    failed: int = 0


def get_gateway() -> MessagingGateway:
    """
    Instantiate the configured MessagingGateway.

    Raises:
        StampmanError: GATEWAY_UNAVAILABLE if MESSAGING_BACKEND is not set
    """
    backend_path = stampman_settings.MESSAGING_BACKEND
    if not backend_path:
        raise StampmanError("GATEWAY_UNAVAILABLE", message="MESSAGING_BACKEND is not configured")
    backend_class = import_string(backend_path)
    return backend_class()


def dispatch_pending(gateway: MessagingGateway | None = None, limit: int | None = None) -> DispatchReport:
    """
    Hand pending messages to the gateway.

    Each message is claimed (pending -> sending) before the send, so
    concurrent dispatchers never send the same message twice. Claims older
    than MESSAGING_CLAIM_TIMEOUT belong to a dispatcher that died mid-send;
    they go back to pending first, so delivery is at-least-once for them.
    """
    gateway = gateway or get_gateway()
    limit = limit or stampman_settings.DISPATCH_BATCH_SIZE
    report = DispatchReport()
    release_stale_claims()

    pending = list(
        ScheduledMessage.objects
        .filter(status=MessageStatus.PENDING)
        .order_by("created_at", "id")[:limit]
    )
    for message in pending:
        claimed = ScheduledMessage.objects.filter(
            pk=message.pk,
            status=MessageStatus.PENDING,
        ).update(
            status=MessageStatus.SENDING,
            attempts=F("attempts") + 1,
            claimed_at=timezone.now(),
        )
        if not claimed:
            continue

        try:
            provider_id = gateway.send(message.recipient_phone, message.body)
        except GatewayError as exc:
            logger.warning("Message %s failed: %s", message.pk, exc)
            _mark_failed(message, str(exc))
            report.failed += 1
            continue
        except Exception as exc:
            logger.exception("Message %s failed: unexpected gateway error", message.pk)
            _mark_failed(message, repr(exc))
            report.failed += 1
            continue

        _mark_sent(message, provider_id or "")
        report.sent += 1

    if pending:
        logger.info("Dispatch finished: sent=%d failed=%d", report.sent, report.failed)
    return report


def release_stale_claims(now=None) -> int:
    """Return messages stuck in sending past MESSAGING_CLAIM_TIMEOUT to pending."""
    now = now or timezone.now()
    cutoff = now - timedelta(seconds=stampman_settings.MESSAGING_CLAIM_TIMEOUT)
    released = ScheduledMessage.objects.filter(
        status=MessageStatus.SENDING,
        claimed_at__lt=cutoff,
    ).update(status=MessageStatus.PENDING, claimed_at=None)
    if released:
        logger.warning("Released %d stale message claims", released)
    return released


def _mark_sent(message: ScheduledMessage, provider_id: str) -> None:
    with transaction.atomic():
        ScheduledMessage.objects.filter(pk=message.pk).update(
            status=MessageStatus.SENT,
            sent_at=timezone.now(),
            provider_message_id=provider_id[:255],
            error_message="",
        )
        Campaign.objects.filter(pk=message.campaign_id).update(sent_count=F("sent_count") + 1)


def _mark_failed(message: ScheduledMessage, error: str) -> None:
    with transaction.atomic():
        ScheduledMessage.objects.filter(pk=message.pk).update(
            status=MessageStatus.FAILED,
            error_message=error[:500],
        )
        Campaign.objects.filter(pk=message.campaign_id).update(failed_count=F("failed_count") + 1)
