"""
Stamp card HTTP endpoints.

Two surfaces share one engine:
    Scanner (public, token-scoped):
        GET  scanner/<token>/          validate token, optional ?customer=<id> card
        POST scanner/<token>/stamp     {customer_id, quantity, idempotency_key}
        POST scanner/<token>/redeem    {customer_id}
    Owner (authenticated):
        POST stamp                     {customer_id, quantity, idempotency_key}
        POST redeem                    {customer_id, unlock_event_id?}

The idempotency key may also be sent as an Idempotency-Key header.
Scanner endpoints are rate limited per client IP (429 RATE_LIMITED).
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.utils.module_loading import import_string
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.models import Business
from stampman.service import StampService
from stampman.throttling import ScannerRateThrottle, ScannerValidateThrottle

logger = logging.getLogger("stampman.views")

STATUS_BY_KIND = {
    "validation": 400,
    "not_found": 404,
    "invalid": 401,
    "conflict": 409,
    "unavailable": 503,
}


def resolve_owned_business(request):
    """Default owner resolver: the first active business owned by request.user."""
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        return None
    return (
        Business.objects
        .filter(owner=user, is_active=True)
        .order_by("created_at")
        .values_list("pk", flat=True)
        .first()
    )


def error_response(exc: StampmanError) -> JsonResponse:
    status = STATUS_BY_KIND.get(exc.kind, 503)
    if status >= 500:
        logger.warning("Stamp request failed: %s", exc)
    return JsonResponse(
        {"error": {"code": exc.code, "message": exc.message}},
        status=status,
    )


def _read_json(request) -> dict:
    if not request.body:
        return {}
    data = json.loads(request.body)
    if not isinstance(data, dict):
        raise ValueError("JSON body must be an object")
    return data


def _idempotency_key(request, data: dict) -> str:
    return data.get("idempotency_key") or request.headers.get("Idempotency-Key", "")


def _grant_response(grant) -> JsonResponse:
    return JsonResponse(grant.as_dict(), status=200 if grant.replayed else 201)


def _redemption_payload(record) -> dict:
    return {
        "redemption_id": record.pk,
        "unlock_event_id": record.unlock_event_id,
        "customer_id": str(record.customer_id),
        "stamps_at_redemption": record.stamps_at_redemption,
        "redeemed_at": record.redeemed_at,
    }


def _invalid_json() -> JsonResponse:
    return JsonResponse(
        {"error": {"code": "INVALID_JSON", "message": "Invalid JSON"}},
        status=400,
    )


def _throttled(wait) -> JsonResponse:
    response = JsonResponse(
        {"error": {"code": "RATE_LIMITED", "message": "Too many scanner requests, try again later"}},
        status=429,
    )
    if wait is not None:
        response["Retry-After"] = str(math.ceil(wait))
    return response


class ScannerMixin:
    """
    Scanner responses never reveal which business a customer belongs to.

    Requests over the per-IP limit get 429 before the token is looked at.
    """

    throttle_classes = [ScannerRateThrottle]

    def dispatch(self, request, *args, **kwargs):
        for throttle_class in self.throttle_classes:
            throttle = throttle_class()
            if not throttle.allow_request(request, self):
                return _throttled(throttle.wait())
        return super().dispatch(request, *args, **kwargs)

    def scanner_error(self, exc: StampmanError) -> JsonResponse:
        if exc.code == "BUSINESS_MISMATCH":
            exc = StampmanError("CUSTOMER_NOT_FOUND")
        return error_response(exc)


@method_decorator(csrf_exempt, name="dispatch")
class ScannerView(ScannerMixin, View):
    """GET: token validation, plus the customer's card when ?customer= is given."""

    throttle_classes = [ScannerValidateThrottle]

    def get(self, request, token):
        try:
            access = StampService.validate_scanner(token)
            payload = {"scanner": asdict(access)}
            customer_id = request.GET.get("customer")
            if customer_id:
                payload["card"] = asdict(StampService.card(customer_id, business_id=access.business_id))
        except StampmanError as exc:
            return self.scanner_error(exc)
        return JsonResponse(payload)


@method_decorator(csrf_exempt, name="dispatch")
class ScannerStampView(ScannerMixin, View):
    def post(self, request, token):
        try:
            data = _read_json(request)
        except ValueError:
            return _invalid_json()

        try:
            grant = StampService.scanner_stamp(
                token,
                data.get("customer_id"),
                data.get("quantity", 1),
                _idempotency_key(request, data),
            )
        except StampmanError as exc:
            return self.scanner_error(exc)
        return _grant_response(grant)


@method_decorator(csrf_exempt, name="dispatch")
class ScannerRedeemView(ScannerMixin, View):
    def post(self, request, token):
        try:
            data = _read_json(request)
        except ValueError:
            return _invalid_json()

        try:
            record = StampService.scanner_redeem(token, data.get("customer_id"))
        except StampmanError as exc:
            return self.scanner_error(exc)
        return JsonResponse(_redemption_payload(record), status=201)


class OwnerMixin:
    """Resolves the acting business through OWNER_BUSINESS_RESOLVER."""

    def resolve_business(self, request):
        resolver = import_string(stampman_settings.OWNER_BUSINESS_RESOLVER)
        return resolver(request)

    def actor(self, request) -> str:
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            return f"user:{user.pk}"
        return "owner"

    def unauthorized(self) -> JsonResponse:
        return JsonResponse(
            {"error": {"code": "UNAUTHORIZED", "message": "Authentication required"}},
            status=401,
        )


@method_decorator(csrf_exempt, name="dispatch")
class OwnerStampView(OwnerMixin, View):
    def post(self, request):
        business_id = self.resolve_business(request)
        if business_id is None:
            return self.unauthorized()

        try:
            data = _read_json(request)
        except ValueError:
            return _invalid_json()

        try:
            grant = StampService.stamp(
                business_id,
                data.get("customer_id"),
                data.get("quantity", 1),
                _idempotency_key(request, data),
                actor=self.actor(request),
            )
        except StampmanError as exc:
            return error_response(exc)
        return _grant_response(grant)


@method_decorator(csrf_exempt, name="dispatch")
class OwnerRedeemView(OwnerMixin, View):
    def post(self, request):
        business_id = self.resolve_business(request)
        if business_id is None:
            return self.unauthorized()

        try:
            data = _read_json(request)
        except ValueError:
            return _invalid_json()

        try:
            record = StampService.redeem(
                business_id,
                data.get("customer_id"),
                actor=self.actor(request),
                unlock_event_id=data.get("unlock_event_id"),
            )
        except StampmanError as exc:
            return error_response(exc)
        return JsonResponse(_redemption_payload(record), status=201)
