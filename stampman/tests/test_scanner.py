"""
Scanner access gate tests.

Every rejection looks the same from outside (INVALID_TOKEN).
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.utils import timezone

from stampman.exceptions import StampmanError
from stampman.models import ScannerToken, StampLedgerEntry
from stampman.models.scanner_token import hash_token
from stampman.service import StampService
from stampman.services import business as business_service
from stampman.services import scanner

pytestmark = pytest.mark.django_db


class TestCreateToken:
    def test_secret_is_not_stored(self, scanner_token):
        token, secret = scanner_token

        assert token.token_hash == hash_token(secret)
        assert secret not in token.token_hash
        assert token.token_prefix == secret[:8]

    def test_access_url(self, scanner_token):
        _, secret = scanner_token
        assert scanner.access_url(secret) == f"https://scan.example.com/scan/{secret}"

    def test_scoped_to_location(self, business):
        location = business_service.add_location(business.pk, "Providencia")

        token, secret = scanner.create_token(business.pk, "Caja 2", location_id=location.pk)

        assert scanner.validate(secret).location_name == "Providencia"

    def test_location_of_other_business(self, business, other_business):
        location = business_service.add_location(other_business.pk, "Centro")

        with pytest.raises(StampmanError, match="BUSINESS_NOT_FOUND"):
            scanner.create_token(business.pk, "Caja", location_id=location.pk)


class TestValidate:
    def test_valid_token(self, business, scanner_token):
        token, secret = scanner_token

        access = StampService.validate_scanner(secret)

        assert access.business_id == str(business.pk)
        assert access.business_name == "Café Lola"
        assert access.stamps_required == 10
        assert access.actor == f"scanner:{token.pk}"

    def test_usage_count_increments_monotonically(self, scanner_token):
        token, secret = scanner_token

        seen = []
        for _ in range(4):
            scanner.validate(secret)
            token.refresh_from_db()
            seen.append(token.usage_count)

        assert seen == [1, 2, 3, 4]
        assert token.last_used_at is not None

    @pytest.mark.parametrize("secret", ["", "short", "has spaces in it!!", "x" * 200, None])
    def test_malformed(self, secret):
        with pytest.raises(StampmanError, match="INVALID_TOKEN"):
            scanner.validate(secret)

    def test_unknown(self, db):
        with pytest.raises(StampmanError, match="INVALID_TOKEN"):
            scanner.validate("A" * 32)

    def test_revoked(self, business, scanner_token):
        token, secret = scanner_token
        scanner.revoke(business.pk, token.pk)

        with pytest.raises(StampmanError, match="INVALID_TOKEN"):
            scanner.validate(secret)

        token.refresh_from_db()
        assert token.usage_count == 0

    def test_expired(self, business):
        _, secret = scanner.create_token(
            business.pk,
            "Temporal",
            expires_at=timezone.now() - timedelta(minutes=1),
        )

        with pytest.raises(StampmanError, match="INVALID_TOKEN"):
            scanner.validate(secret)

    def test_not_yet_expired(self, business):
        expires = timezone.now() + timedelta(hours=1)
        _, secret = scanner.create_token(business.pk, "Temporal", expires_at=expires)

        scanner.validate(secret)

        with pytest.raises(StampmanError, match="INVALID_TOKEN"):
            scanner.validate(secret, now=expires + timedelta(seconds=1))

    def test_inactive_business(self, business, scanner_token):
        _, secret = scanner_token
        business.is_active = False
        business.save(update_fields=["is_active"])

        with pytest.raises(StampmanError, match="INVALID_TOKEN"):
            scanner.validate(secret)

    def test_rejections_are_indistinguishable(self, business, scanner_token):
        token, secret = scanner_token
        scanner.revoke(business.pk, token.pk)

        errors = []
        for candidate in [secret, "B" * 32, "bad"]:
            with pytest.raises(StampmanError) as exc_info:
                scanner.validate(candidate)
            errors.append(exc_info.value.as_dict())

        assert errors[0] == errors[1] == errors[2]

    def test_usage_failure_does_not_block(self, scanner_token):
        token, secret = scanner_token

        with patch(
            "django.db.models.query.QuerySet.update",
            side_effect=DatabaseError("database is locked"),
        ):
            access = scanner.validate(secret)

        assert access.token_id == str(token.pk)
        token.refresh_from_db()
        assert token.usage_count == 0

    def test_record_usage_reports_failure(self, scanner_token):
        token, _ = scanner_token

        with patch(
            "django.db.models.query.QuerySet.update",
            side_effect=DatabaseError("database is locked"),
        ):
            assert scanner.record_usage(token) is False


class TestLifecycle:
    def test_revoke_stays_revoked_until_reactivated(self, business, scanner_token):
        token, secret = scanner_token

        scanner.revoke(business.pk, token.pk)
        scanner.revoke(business.pk, token.pk)
        with pytest.raises(StampmanError, match="INVALID_TOKEN"):
            scanner.validate(secret)

        scanner.reactivate(business.pk, token.pk)
        scanner.validate(secret)

    def test_other_business_cannot_manage_token(self, other_business, scanner_token):
        token, _ = scanner_token

        with pytest.raises(StampmanError, match="TOKEN_NOT_FOUND"):
            scanner.revoke(other_business.pk, token.pk)

        with pytest.raises(StampmanError, match="TOKEN_NOT_FOUND"):
            scanner.delete(other_business.pk, token.pk)

    def test_delete_and_list(self, business, scanner_token):
        token, _ = scanner_token
        scanner.create_token(business.pk, "Caja 2")

        assert len(scanner.list_tokens(business.pk)) == 2

        scanner.delete(business.pk, token.pk)

        assert not ScannerToken.objects.filter(pk=token.pk).exists()
        assert len(scanner.list_tokens(business.pk)) == 1


class TestScannerOperations:
    def test_stamp_through_scanner(self, customer, scanner_token):
        token, secret = scanner_token

        grant = StampService.scanner_stamp(secret, customer.pk, 2, "scan-1")

        assert grant.stamps_count == 2
        entry = StampLedgerEntry.objects.get(pk=grant.entry_id)
        assert entry.actor == f"scanner:{token.pk}"

    def test_scanner_cannot_stamp_other_business(self, other_customer, scanner_token):
        _, secret = scanner_token

        with pytest.raises(StampmanError, match="BUSINESS_MISMATCH"):
            StampService.scanner_stamp(secret, other_customer.pk, 1, "scan-x")

    def test_revoked_scanner_cannot_stamp(self, business, customer, scanner_token):
        token, secret = scanner_token
        scanner.revoke(business.pk, token.pk)

        with pytest.raises(StampmanError, match="INVALID_TOKEN"):
            StampService.scanner_stamp(secret, customer.pk, 1, "scan-2")

        customer.refresh_from_db()
        assert customer.stamps_count == 0

    def test_redeem_through_scanner(self, customer, scanner_token):
        token, secret = scanner_token
        StampService.scanner_stamp(secret, customer.pk, 10, "scan-full")

        record = StampService.scanner_redeem(secret, customer.pk)

        assert record.actor == f"scanner:{token.pk}"
