"""Idempotency guard - exactly-once execution per (business, key).

The key row and the guarded operation share one savepoint:
- insert succeeds -> operation runs, its result is stored with the key;
- insert conflicts -> the stored result is returned, operation never runs;
- operation raises -> the savepoint rolls back the key too, so a retry
  with the same key can proceed.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from django.db import IntegrityError, transaction

from stampman.exceptions import StampmanError
from stampman.gates import GateError, Gates
from stampman.models import IdempotencyRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardOutcome:
    """Result of a guarded operation."""

    result: dict
    replayed: bool = False


def apply(
    business_id,
    idempotency_key: str,
    operation: Callable[[], dict],
    name: str = "",
) -> GuardOutcome:
    """
    Run ``operation`` at most once for (business_id, idempotency_key).

    Args:
        business_id: Business scope of the key
        idempotency_key: Caller-supplied opaque key (never generated here)
        operation: Callable returning a JSON-serializable dict
        name: Operation label stored with the key (e.g. "stamp")

    Returns:
        GuardOutcome with the fresh or the previously stored result

    Raises:
        StampmanError: IDEMPOTENCY_KEY_REQUIRED for a missing/oversized key.
            Anything raised by ``operation`` propagates unchanged.
    """
    try:
        Gates.idempotency_key(idempotency_key)
    except GateError as exc:
        raise StampmanError("IDEMPOTENCY_KEY_REQUIRED", message=exc.message) from exc

    try:
        with transaction.atomic():
            record = IdempotencyRecord.objects.create(
                business_id=business_id,
                key=idempotency_key,
                operation=name,
            )
            result = operation()
            record.result = result
            record.save(update_fields=["result"])
    except IntegrityError:
        # Either the key already exists (replay) or the operation itself hit
        # a constraint. Only the former has a committed record.
        stored = IdempotencyRecord.objects.filter(
            business_id=business_id,
            key=idempotency_key,
        ).first()
        if stored is None:
            raise
        logger.info(
            "Idempotent replay: business=%s key=%s operation=%s",
            business_id,
            idempotency_key,
            stored.operation,
        )
        return GuardOutcome(result=stored.result or {}, replayed=True)

    return GuardOutcome(result=result)


def was_applied(business_id, idempotency_key: str) -> bool:
    """Check if a key was already consumed (doesn't record)."""
    return IdempotencyRecord.objects.filter(
        business_id=business_id,
        key=idempotency_key,
    ).exists()
