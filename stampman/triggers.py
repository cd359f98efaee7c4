"""
Campaign triggers and customer events.

A campaign's (trigger_type, trigger_config) pair is parsed into one of the
frozen trigger variants below. Customer state changes are described by the
event variants. ``Trigger.matches(event)`` is the whole firing rule.

Every event carries an ``event_id`` that is stable across redeliveries of
the same underlying change; CampaignFiring dedup is keyed on it.
"""

from dataclasses import dataclass
from typing import Union

from stampman.exceptions import StampmanError


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class CustomerEnrolled:
    event_id: str


@dataclass(frozen=True)
class StampsGranted:
    event_id: str
    new_count: int
    quantity: int = 1


@dataclass(frozen=True)
class RewardUnlocked:
    event_id: str
    reward_description: str = ""


@dataclass(frozen=True)
class InactivityCheck:
    event_id: str
    days_since_last_stamp: int


CustomerEvent = Union[CustomerEnrolled, StampsGranted, RewardUnlocked, InactivityCheck]


# =============================================================================
# Triggers
# =============================================================================


@dataclass(frozen=True)
class CustomerEnrolledTrigger:
    type = "customer_enrolled"

    def matches(self, event) -> bool:
        return isinstance(event, CustomerEnrolled)


@dataclass(frozen=True)
class StampsReachedTrigger:
    """Exact match only. A batch that jumps past ``value`` does not fire."""

    value: int
    type = "stamps_reached"

    def matches(self, event) -> bool:
        return isinstance(event, StampsGranted) and event.new_count == self.value


@dataclass(frozen=True)
class RewardUnlockedTrigger:
    type = "reward_unlocked"

    def matches(self, event) -> bool:
        return isinstance(event, RewardUnlocked)


@dataclass(frozen=True)
class DaysInactiveTrigger:
    value: int
    type = "days_inactive"

    def matches(self, event) -> bool:
        return (
            isinstance(event, InactivityCheck)
            and event.days_since_last_stamp == self.value
        )


@dataclass(frozen=True)
class StampEarnedTrigger:
    type = "stamp_earned"

    def matches(self, event) -> bool:
        return isinstance(event, StampsGranted)


Trigger = Union[
    CustomerEnrolledTrigger,
    StampsReachedTrigger,
    RewardUnlockedTrigger,
    DaysInactiveTrigger,
    StampEarnedTrigger,
]

_VALUELESS = {
    "customer_enrolled": CustomerEnrolledTrigger,
    "reward_unlocked": RewardUnlockedTrigger,
    "stamp_earned": StampEarnedTrigger,
}

_VALUED = {
    "stamps_reached": StampsReachedTrigger,
    "days_inactive": DaysInactiveTrigger,
}


def parse_trigger(trigger_type: str, config: dict | None = None) -> Trigger:
    """
    Build the typed trigger for a campaign.

    Args:
        trigger_type: One of the TriggerType values
        config: trigger_config JSON, e.g. {"value": 5}

    Raises:
        StampmanError: INVALID_TRIGGER_CONFIG for unknown types or a
            missing/non-positive integer value on count/day triggers
    """
    config = config or {}

    if trigger_type in _VALUELESS:
        return _VALUELESS[trigger_type]()

    if trigger_type in _VALUED:
        value = config.get("value")
        # bool is an int subclass; reject it explicitly
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise StampmanError(
                "INVALID_TRIGGER_CONFIG",
                trigger_type=trigger_type,
                value=value,
            )
        return _VALUED[trigger_type](value=value)

    raise StampmanError("INVALID_TRIGGER_CONFIG", trigger_type=trigger_type)
