"""Pytest fixtures for Stampman tests."""

import pytest
from django.core.cache import cache

from stampman.models import CampaignStatus
from stampman.services import business as business_service
from stampman.services import campaigns, scanner


@pytest.fixture(autouse=True)
def clear_rate_limits():
    """Scanner throttle counters live in the default cache."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def business(db):
    """Coffee shop with a 10-stamp card."""
    return business_service.create_business(
        "Café Lola",
        stamps_required=10,
        reward_description="Café gratis",
    )


@pytest.fixture
def other_business(db):
    return business_service.create_business(
        "Panadería Sol",
        stamps_required=5,
        reward_description="Pan amasado",
    )


@pytest.fixture
def customer(db, business):
    """Customer with a WhatsApp-capable phone."""
    return business_service.enroll(business.pk, "Ana Pérez", phone="+56 9 1234 5678")


@pytest.fixture
def other_customer(db, other_business):
    return business_service.enroll(other_business.pk, "Luis Rojas", phone="+56987654321")


@pytest.fixture
def scanner_token(db, business):
    """Returns (ScannerToken, raw secret)."""
    return scanner.create_token(business.pk, "Caja 1", created_by="test")


@pytest.fixture
def owner(db, django_user_model, business):
    user = django_user_model.objects.create_user(username="lola", password="secret")
    business.owner = user
    business.save(update_fields=["owner"])
    return user


@pytest.fixture
def make_campaign(db, business):
    """Factory for active campaigns of the default business."""

    def _make(trigger_type, template="Hola {nombre}", value=None, status=CampaignStatus.ACTIVE):
        config = {"value": value} if value is not None else {}
        return campaigns.create_campaign(
            business.pk,
            f"{trigger_type} campaign",
            trigger_type,
            template,
            trigger_config=config,
            status=status,
        )

    return _make


class FakeGateway:
    """MessagingGateway double that records sends."""

    def __init__(self, fail_with=None):
        self.sent = []
        self.fail_with = fail_with

    def send(self, recipient_phone, body):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((recipient_phone, body))
        return f"msg-{len(self.sent)}"


@pytest.fixture
def gateway():
    return FakeGateway()
