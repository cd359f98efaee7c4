"""
HTTP surface tests (RequestFactory).
"""

import json

import pytest
from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory

from stampman.service import StampService
from stampman.services import scanner
from stampman.views import (
    OwnerRedeemView,
    OwnerStampView,
    ScannerRedeemView,
    ScannerStampView,
    ScannerView,
    resolve_owned_business,
)

pytestmark = pytest.mark.django_db


@pytest.fixture
def rf():
    return RequestFactory()


def _post(rf, path, payload, user=None, **headers):
    request = rf.post(path, data=json.dumps(payload), content_type="application/json", headers=headers)
    request.user = user or AnonymousUser()
    return request


def _json(response):
    return json.loads(response.content)


class TestScannerViews:
    def test_validate(self, rf, scanner_token):
        _, secret = scanner_token
        request = rf.get(f"/scanner/{secret}/")

        response = ScannerView.as_view()(request, token=secret)

        assert response.status_code == 200
        assert _json(response)["scanner"]["business_name"] == "Café Lola"

    def test_validate_with_card(self, rf, customer, scanner_token):
        _, secret = scanner_token
        request = rf.get(f"/scanner/{secret}/", {"customer": str(customer.pk)})

        response = ScannerView.as_view()(request, token=secret)

        card = _json(response)["card"]
        assert card["customer_name"] == "Ana Pérez"
        assert card["stamps_remaining"] == 10

    def test_invalid_token_is_401(self, rf, db):
        request = rf.get("/scanner/nope/")

        response = ScannerView.as_view()(request, token="nope")

        assert response.status_code == 401
        assert _json(response)["error"]["code"] == "INVALID_TOKEN"

    def test_stamp_created_then_replayed(self, rf, customer, scanner_token):
        _, secret = scanner_token
        payload = {"customer_id": str(customer.pk), "quantity": 2, "idempotency_key": "scan-1"}

        first = ScannerStampView.as_view()(_post(rf, "/", payload), token=secret)
        payload["quantity"] = 5
        second = ScannerStampView.as_view()(_post(rf, "/", payload), token=secret)

        assert first.status_code == 201
        assert _json(first)["stamps_count"] == 2
        assert second.status_code == 200
        assert _json(second)["replayed"] is True
        assert _json(second)["stamps_count"] == 2

    def test_idempotency_key_header(self, rf, customer, scanner_token):
        _, secret = scanner_token
        payload = {"customer_id": str(customer.pk), "quantity": 1}

        request = _post(rf, "/", payload, **{"Idempotency-Key": "hdr-1"})
        response = ScannerStampView.as_view()(request, token=secret)

        assert response.status_code == 201

    def test_missing_key_is_400(self, rf, customer, scanner_token):
        _, secret = scanner_token
        payload = {"customer_id": str(customer.pk), "quantity": 1}

        response = ScannerStampView.as_view()(_post(rf, "/", payload), token=secret)

        assert response.status_code == 400
        assert _json(response)["error"]["code"] == "IDEMPOTENCY_KEY_REQUIRED"

    def test_invalid_quantity_is_400(self, rf, customer, scanner_token):
        _, secret = scanner_token
        payload = {"customer_id": str(customer.pk), "quantity": 11, "idempotency_key": "k"}

        response = ScannerStampView.as_view()(_post(rf, "/", payload), token=secret)

        assert response.status_code == 400
        assert _json(response)["error"]["code"] == "INVALID_QUANTITY"

    def test_other_business_customer_looks_missing(self, rf, other_customer, scanner_token):
        _, secret = scanner_token
        payload = {"customer_id": str(other_customer.pk), "quantity": 1, "idempotency_key": "k"}

        response = ScannerStampView.as_view()(_post(rf, "/", payload), token=secret)

        assert response.status_code == 404
        assert _json(response)["error"]["code"] == "CUSTOMER_NOT_FOUND"

    def test_invalid_json_is_400(self, rf, scanner_token):
        _, secret = scanner_token
        request = rf.post("/", data="{not json", content_type="application/json")

        response = ScannerStampView.as_view()(request, token=secret)

        assert response.status_code == 400

    def test_redeem(self, rf, business, customer, scanner_token):
        _, secret = scanner_token
        StampService.stamp(business.pk, customer.pk, 10, "fill")
        view = ScannerRedeemView.as_view()

        first = view(_post(rf, "/", {"customer_id": str(customer.pk)}), token=secret)
        second = view(_post(rf, "/", {"customer_id": str(customer.pk)}), token=secret)

        assert first.status_code == 201
        assert second.status_code == 409
        assert _json(second)["error"]["code"] == "ALREADY_REDEEMED"

    def test_redeem_nothing_available_is_404(self, rf, customer, scanner_token):
        _, secret = scanner_token

        response = ScannerRedeemView.as_view()(
            _post(rf, "/", {"customer_id": str(customer.pk)}),
            token=secret,
        )

        assert response.status_code == 404
        assert _json(response)["error"]["code"] == "NO_REWARD_AVAILABLE"

    def test_revoked_token_cannot_redeem(self, rf, business, customer, scanner_token):
        token, secret = scanner_token
        scanner.revoke(business.pk, token.pk)

        response = ScannerRedeemView.as_view()(
            _post(rf, "/", {"customer_id": str(customer.pk)}),
            token=secret,
        )

        assert response.status_code == 401


class TestScannerRateLimits:
    def test_validate_limited_per_ip(self, rf, scanner_token, settings):
        _, secret = scanner_token
        settings.STAMPMAN = {"SCANNER_VALIDATE_RATE": "2/min"}
        view = ScannerView.as_view()

        statuses = [view(rf.get("/"), token=secret).status_code for _ in range(3)]
        elsewhere = view(rf.get("/", REMOTE_ADDR="10.0.0.9"), token=secret)

        assert statuses == [200, 200, 429]
        assert elsewhere.status_code == 200

    def test_guessing_tokens_is_limited(self, rf, db, settings):
        settings.STAMPMAN = {"SCANNER_VALIDATE_RATE": "3/min"}
        view = ScannerView.as_view()

        responses = [view(rf.get("/"), token=f"guess-{n:012d}") for n in range(4)]

        assert [r.status_code for r in responses] == [401, 401, 401, 429]
        assert _json(responses[-1])["error"]["code"] == "RATE_LIMITED"
        assert int(responses[-1]["Retry-After"]) > 0

    def test_stamp_and_redeem_share_limit(self, rf, business, customer, scanner_token, settings):
        _, secret = scanner_token
        settings.STAMPMAN = {"SCANNER_RATE": "2/hour"}
        payload = {"customer_id": str(customer.pk), "quantity": 1, "idempotency_key": "rl-1"}

        first = ScannerStampView.as_view()(_post(rf, "/", payload), token=secret)
        second = ScannerRedeemView.as_view()(_post(rf, "/", {"customer_id": str(customer.pk)}), token=secret)
        payload["idempotency_key"] = "rl-2"
        third = ScannerStampView.as_view()(_post(rf, "/", payload), token=secret)

        assert first.status_code == 201
        assert second.status_code == 404
        assert third.status_code == 429
        assert StampService.card(customer.pk).stamps_count == 1

    def test_disabled_limit(self, rf, scanner_token, settings):
        _, secret = scanner_token
        settings.STAMPMAN = {"SCANNER_VALIDATE_RATE": None}
        view = ScannerView.as_view()

        assert all(view(rf.get("/"), token=secret).status_code == 200 for _ in range(15))


class TestOwnerViews:
    def test_resolver(self, rf, business, owner):
        request = rf.get("/")
        request.user = owner

        assert resolve_owned_business(request) == business.pk

    def test_resolver_anonymous(self, rf, db):
        request = rf.get("/")
        request.user = AnonymousUser()

        assert resolve_owned_business(request) is None

    def test_anonymous_is_401(self, rf, customer):
        payload = {"customer_id": str(customer.pk), "quantity": 1, "idempotency_key": "k"}

        response = OwnerStampView.as_view()(_post(rf, "/stamp", payload))

        assert response.status_code == 401

    def test_stamp(self, rf, customer, owner):
        payload = {"customer_id": str(customer.pk), "quantity": 3, "idempotency_key": "till-1"}

        response = OwnerStampView.as_view()(_post(rf, "/stamp", payload, user=owner))

        assert response.status_code == 201
        body = _json(response)
        assert body["stamps_count"] == 3
        assert body["replayed"] is False
        assert StampService.history(customer.pk)[0].actor == f"user:{owner.pk}"

    def test_stamp_other_business_customer(self, rf, other_customer, owner):
        payload = {"customer_id": str(other_customer.pk), "quantity": 1, "idempotency_key": "k"}

        response = OwnerStampView.as_view()(_post(rf, "/stamp", payload, user=owner))

        assert response.status_code == 404
        assert _json(response)["error"]["code"] == "BUSINESS_MISMATCH"

    def test_redeem_specific_event(self, rf, business, customer, owner):
        grant = StampService.stamp(business.pk, customer.pk, 10, "fill")
        payload = {"customer_id": str(customer.pk), "unlock_event_id": grant.unlock_event_ids[0]}

        response = OwnerRedeemView.as_view()(_post(rf, "/redeem", payload, user=owner))

        assert response.status_code == 201
        assert _json(response)["unlock_event_id"] == grant.unlock_event_ids[0]

    def test_custom_resolver(self, rf, business, customer, settings):
        settings.STAMPMAN = {"OWNER_BUSINESS_RESOLVER": "stampman.tests.test_views.header_resolver"}
        payload = {"customer_id": str(customer.pk), "quantity": 1, "idempotency_key": "k"}

        request = _post(rf, "/stamp", payload, **{"X-Business": str(business.pk)})
        response = OwnerStampView.as_view()(request)

        assert response.status_code == 201

    def test_contention_is_409(self, rf, customer, owner, monkeypatch):
        from stampman.exceptions import StampmanError

        def contended(*args, **kwargs):
            raise StampmanError("CONTENTION")

        monkeypatch.setattr("stampman.services.stamps.grant_stamps", contended)
        payload = {"customer_id": str(customer.pk), "quantity": 1, "idempotency_key": "k"}

        response = OwnerStampView.as_view()(_post(rf, "/stamp", payload, user=owner))

        assert response.status_code == 409

    def test_storage_failure_is_503(self, rf, customer, owner, monkeypatch):
        from django.db import OperationalError

        def down(*args, **kwargs):
            raise OperationalError("database is locked")

        monkeypatch.setattr("stampman.services.stamps.grant_stamps", down)
        payload = {"customer_id": str(customer.pk), "quantity": 1, "idempotency_key": "k"}

        response = OwnerStampView.as_view()(_post(rf, "/stamp", payload, user=owner))

        assert response.status_code == 503
        assert _json(response)["error"]["code"] == "STORAGE_UNAVAILABLE"


def header_resolver(request):
    return request.headers.get("X-Business")
