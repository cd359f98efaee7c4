"""Stampman models."""

from stampman.models.business import Business, BusinessLocation
from stampman.models.customer import Customer
from stampman.models.ledger import RedemptionRecord, RewardUnlockEvent, StampLedgerEntry
from stampman.models.scanner_token import ScannerToken
from stampman.models.campaign import (
    Campaign,
    CampaignFiring,
    CampaignStatus,
    MessageStatus,
    ScheduledMessage,
    TriggerType,
)
from stampman.models.idempotency import IdempotencyRecord

__all__ = [
    "Business",
    "BusinessLocation",
    "Customer",
    # Append-only card history
    "StampLedgerEntry",
    "RewardUnlockEvent",
    "RedemptionRecord",
    # Scanner access
    "ScannerToken",
    # Campaigns
    "Campaign",
    "CampaignFiring",
    "CampaignStatus",
    "MessageStatus",
    "ScheduledMessage",
    "TriggerType",
    # Idempotency guard
    "IdempotencyRecord",
]
