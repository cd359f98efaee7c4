"""
Evolution gateway adapter tests (HTTP mocked).
"""

import time
from unittest.mock import MagicMock

import pytest
import requests

from stampman.adapters.evolution import EvolutionGateway
from stampman.adapters.logging_gateway import LoggingGateway
from stampman.protocols.messaging import GatewayError, MessagingGateway


def _response(status_code, payload=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def sleeps(monkeypatch):
    """Waits requested by the retry policy, without sleeping."""
    waits = []
    monkeypatch.setattr(time, "sleep", waits.append)
    return waits


@pytest.fixture
def gateway(session, sleeps):
    return EvolutionGateway(
        base_url="https://evolution.example.com/",
        api_key="test-key",
        instance="lola",
        max_attempts=3,
        backoff_base=2.0,
        timeout=5,
        session=session,
    )


class TestEvolutionGateway:
    def test_implements_protocol(self, gateway):
        assert isinstance(gateway, MessagingGateway)
        assert isinstance(LoggingGateway(), MessagingGateway)

    def test_send(self, gateway, session):
        session.post.return_value = _response(201, {"key": {"id": "ABC123"}})

        assert gateway.send("+56 9 1234 5678", "Hola") == "ABC123"

        args, kwargs = session.post.call_args
        assert args[0] == "https://evolution.example.com/message/sendText/lola"
        assert kwargs["json"]["number"] == "56912345678"
        assert kwargs["json"]["textMessage"] == {"text": "Hola"}
        assert kwargs["headers"]["apikey"] == "test-key"
        assert kwargs["timeout"] == 5

    def test_send_without_json_body(self, gateway, session):
        session.post.return_value = _response(200)

        assert gateway.send("56912345678", "Hola") == ""

    @pytest.mark.parametrize("payload", [[{"key": {"id": "X"}}], {"key": "X"}, "ok"])
    def test_unexpected_json_body_still_delivered(self, gateway, session, payload):
        session.post.return_value = _response(201, payload)

        assert gateway.send("56912345678", "Hola") == ""
        assert session.post.call_count == 1

    @pytest.mark.parametrize(
        "status,code",
        [
            (400, "INVALID_PHONE_NUMBER"),
            (401, "INVALID_API_KEY"),
            (404, "INSTANCE_NOT_FOUND"),
        ],
    )
    def test_permanent_errors_not_retried(self, gateway, session, sleeps, status, code):
        session.post.return_value = _response(status, text="nope")

        with pytest.raises(GatewayError) as exc_info:
            gateway.send("56912345678", "Hola")

        assert exc_info.value.code == code
        assert not exc_info.value.retryable
        assert session.post.call_count == 1
        assert sleeps == []

    @pytest.mark.parametrize("status,code", [(429, "RATE_LIMITED"), (502, "EVOLUTION_API_ERROR")])
    def test_transient_errors_retried_with_backoff(self, gateway, session, sleeps, status, code):
        session.post.return_value = _response(status)

        with pytest.raises(GatewayError) as exc_info:
            gateway.send("56912345678", "Hola")

        assert exc_info.value.code == code
        assert session.post.call_count == 3
        assert sleeps == [2.0, 4.0]

    def test_recovers_after_timeout(self, gateway, session, sleeps):
        session.post.side_effect = [
            requests.Timeout("slow"),
            requests.ConnectionError("reset"),
            _response(201, {"key": {"id": "OK1"}}),
        ]

        assert gateway.send("56912345678", "Hola") == "OK1"
        assert session.post.call_count == 3
        assert sleeps == [2.0, 4.0]

    def test_requires_credentials(self, settings):
        settings.STAMPMAN = {}

        with pytest.raises(ValueError):
            EvolutionGateway()

    def test_reads_settings(self, settings, session):
        settings.STAMPMAN = {
            "EVOLUTION_API_URL": "https://evo.example.com",
            "EVOLUTION_API_KEY": "k",
            "EVOLUTION_INSTANCE": "shop",
            "MESSAGING_MAX_ATTEMPTS": 5,
        }

        gateway = EvolutionGateway(session=session)

        assert gateway.base_url == "https://evo.example.com"
        assert gateway.instance == "shop"
        assert gateway.max_attempts == 5

    def test_format_phone(self):
        assert EvolutionGateway.format_phone("+56 (9) 1234-5678") == "56912345678"
