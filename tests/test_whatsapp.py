"""
Tests for the WhatsApp gateway client.
"""
import json
import httpx
import pytest

from app.core.circuit_breaker import CircuitBreaker, CircuitState
from app.core.exceptions import ExternalAPIException
from app.external.whatsapp_client import WhatsAppClient, format_phone_number


class TestFormatPhoneNumber:
    """Tests for phone normalization."""

    def test_local_number_gets_default_country_code(self):
        assert format_phone_number("0612345678", "212") == "+212612345678"

    def test_international_number_is_kept(self):
        assert format_phone_number("+33 6 12 34 56 78") == "+33612345678"

    def test_double_zero_prefix(self):
        assert format_phone_number("00212612345678") == "+212612345678"

    def test_zero_before_known_country_code(self):
        assert format_phone_number("0212612345678") == "+212612345678"

    def test_separators_are_removed(self):
        assert format_phone_number("(212) 612-345-678") == "+212612345678"

    def test_empty(self):
        assert format_phone_number(None) is None
        assert format_phone_number("  ") is None


def _client(handler, breaker=None):
    return WhatsAppClient(
        base_url="http://gateway.test",
        transport=httpx.MockTransport(handler),
        circuit_breaker=breaker or CircuitBreaker(name="test_whatsapp", failure_threshold=2, recovery_timeout=60)
    )


class TestWhatsAppClient:
    """Tests for sending through a mocked gateway."""

    async def test_disabled_without_url(self):
        client = WhatsAppClient(base_url="")

        assert not client.enabled
        assert await client.send_message("0612345678", "hello") is False

    async def test_send_message(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"id": "msg-1"})

        sent = await _client(handler).send_message("0612345678", "hello")

        assert sent is True
        assert requests[0].url.path == "/messages"
        assert json.loads(requests[0].content) == {"to": "+212612345678", "body": "hello"}

    async def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, json={"error": "bad number"})

        with pytest.raises(ExternalAPIException):
            await _client(handler).send_message("0612345678", "hello")

        assert len(calls) == 1

    async def test_deliver_swallows_failures(self):
        breaker = CircuitBreaker(name="test_deliver", failure_threshold=1, recovery_timeout=60)
        client = _client(lambda request: httpx.Response(403), breaker)

        assert await client.deliver("0612345678", "hello") is False
        assert breaker.state == CircuitState.OPEN
        # Open circuit fails fast and is swallowed too
        assert await client.deliver("0612345678", "hello") is False

    async def test_payment_link_message(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content)["body"])
            return httpx.Response(200, json={})

        await _client(handler).notify_payment_link("Jane", "0612345678", "http://x/payment/abc", 1500.0, "MAD")

        assert "1500 MAD" in bodies[0]
        assert "http://x/payment/abc" in bodies[0]
