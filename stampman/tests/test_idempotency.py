"""
Idempotency guard tests.

A key is consumed only when the guarded operation commits; a replay
returns the stored result without running the operation again.
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from stampman.exceptions import StampmanError
from stampman.models import Customer, IdempotencyRecord, StampLedgerEntry
from stampman.service import StampService
from stampman.services import idempotency

pytestmark = pytest.mark.django_db


class TestReplay:
    def test_same_key_different_quantity_applies_once(self, business, customer):
        first = StampService.stamp(business.pk, customer.pk, 2, "X")
        second = StampService.stamp(business.pk, customer.pk, 5, "X")

        assert not first.replayed
        assert second.replayed
        assert second.stamps_count == first.stamps_count == 2
        assert second.quantity == 2
        assert second.entry_id == first.entry_id

        customer.refresh_from_db()
        assert customer.stamps_count == 2
        assert StampLedgerEntry.objects.filter(customer=customer).count() == 1

    def test_replay_after_unlock_returns_original_unlocks(self, business, customer):
        StampService.stamp(business.pk, customer.pk, 9, "k1")
        first = StampService.stamp(business.pk, customer.pk, 3, "k2")
        replay = StampService.stamp(business.pk, customer.pk, 3, "k2")

        assert replay.unlock_event_ids == first.unlock_event_ids
        customer.refresh_from_db()
        assert customer.total_rewards_earned == 1

    def test_keys_are_scoped_per_business(self, business, customer, other_business, other_customer):
        a = StampService.stamp(business.pk, customer.pk, 1, "shared-key")
        b = StampService.stamp(other_business.pk, other_customer.pk, 1, "shared-key")

        assert not a.replayed
        assert not b.replayed

    def test_operation_not_called_on_replay(self, business):
        calls = []

        def operation():
            calls.append(1)
            return {"value": len(calls)}

        first = idempotency.apply(business.pk, "once", operation, name="test")
        second = idempotency.apply(business.pk, "once", operation, name="test")

        assert calls == [1]
        assert first.result == second.result == {"value": 1}
        assert second.replayed

    def test_replays_emit_no_signals(self, business, customer):
        from stampman import signals

        received = []

        def handler(sender, grant, **kwargs):
            received.append(grant.entry_id)

        signals.stamps_granted.connect(handler)
        try:
            StampService.stamp(business.pk, customer.pk, 1, "sig")
            StampService.stamp(business.pk, customer.pk, 1, "sig")
        finally:
            signals.stamps_granted.disconnect(handler)

        assert len(received) == 1


class TestFailedOperations:
    """A failing operation rolls its key back so the caller can retry."""

    def test_invalid_quantity_does_not_consume_key(self, business, customer):
        with pytest.raises(StampmanError, match="INVALID_QUANTITY"):
            StampService.stamp(business.pk, customer.pk, 0, "poison")

        assert not idempotency.was_applied(business.pk, "poison")

        grant = StampService.stamp(business.pk, customer.pk, 2, "poison")
        assert not grant.replayed
        assert grant.stamps_count == 2

    def test_unknown_customer_does_not_consume_key(self, business, customer):
        with pytest.raises(StampmanError, match="CUSTOMER_NOT_FOUND"):
            StampService.stamp(business.pk, "00000000-0000-0000-0000-000000000000", 1, "typo")

        grant = StampService.stamp(business.pk, customer.pk, 1, "typo")
        assert grant.stamps_count == 1

    def test_operation_error_propagates_unchanged(self, business):
        def operation():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            idempotency.apply(business.pk, "explodes", operation)

        assert not IdempotencyRecord.objects.filter(key="explodes").exists()


class TestKeyValidation:
    @pytest.mark.parametrize("key", ["", "   ", None, 42, "k" * 256])
    def test_unusable_key_rejected(self, business, customer, key):
        with pytest.raises(StampmanError, match="IDEMPOTENCY_KEY_REQUIRED"):
            StampService.stamp(business.pk, customer.pk, 1, key)

        assert Customer.objects.get(pk=customer.pk).stamps_count == 0

    def test_max_length_key_accepted(self, business, customer):
        grant = StampService.stamp(business.pk, customer.pk, 1, "k" * 255)
        assert grant.stamps_count == 1


class TestCleanup:
    def test_cleanup_old_records(self, business):
        idempotency.apply(business.pk, "old", lambda: {})
        idempotency.apply(business.pk, "new", lambda: {})
        IdempotencyRecord.objects.filter(key="old").update(
            created_at=timezone.now() - timedelta(days=120),
        )

        deleted, _ = IdempotencyRecord.cleanup_old_records()

        assert deleted == 1
        assert list(IdempotencyRecord.objects.values_list("key", flat=True)) == ["new"]

    def test_cleanup_command(self, business):
        from io import StringIO

        from django.core.management import call_command

        idempotency.apply(business.pk, "old", lambda: {})
        IdempotencyRecord.objects.update(created_at=timezone.now() - timedelta(days=10))

        out = StringIO()
        call_command("stampman_cleanup", "--days", "7", stdout=out)

        assert "Deleted 1" in out.getvalue()
        assert not IdempotencyRecord.objects.exists()

    def test_stamp_after_cleanup_replays_from_ledger(self, business, customer):
        first = StampService.stamp(business.pk, customer.pk, 10, "old-key")
        IdempotencyRecord.objects.update(created_at=timezone.now() - timedelta(days=200))
        IdempotencyRecord.cleanup_old_records()

        again = StampService.stamp(business.pk, customer.pk, 3, "old-key")

        assert again.replayed
        assert again.entry_id == first.entry_id
        assert again.stamps_count == first.stamps_count == 0
        assert again.unlock_event_ids == first.unlock_event_ids
        assert again.total_rewards_earned == 1
        assert StampLedgerEntry.objects.filter(customer=customer).count() == 1
        assert Customer.objects.get(pk=customer.pk).stamps_count == 0

        # The rebuilt result is stored again, later calls are plain replays
        assert StampService.stamp(business.pk, customer.pk, 3, "old-key").replayed
