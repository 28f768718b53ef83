"""
Tests for message transports and bounded concurrent delivery.

These tests verify:
1. The Resend transport posts one request per message and maps API errors
2. Concurrent delivery keeps outcome order and isolates failures
3. Transport selection follows the configuration
"""

import json

import httpx
import pytest

from compliance_alerts.core.config import Settings
from compliance_alerts.services import (
    DeliveryFailedError,
    LogOnlyTransport,
    OutboundMessage,
    ResendEmailTransport,
    get_transport,
)
from compliance_alerts.services.transport import deliver_concurrently

from conftest import FakeTransport


def message(to: str = "alice@alpha.ch") -> OutboundMessage:
    return OutboundMessage(to=to, subject="Regulatorische Meldung: Test", html="<p>Test</p>")


# =============================================================================
# TEST: RESEND TRANSPORT
# =============================================================================


class TestResendEmailTransport:
    """HTTP delivery through the Resend API."""

    async def test_posts_message(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "email_123"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = ResendEmailTransport(
            api_key="re_test",
            from_email="Compliance <alerts@compliance.ch>",
            api_url="https://api.resend.test/emails",
            client=client,
        )

        await transport.send(message())
        await transport.close()

        [request] = requests
        assert request.url == "https://api.resend.test/emails"
        assert request.headers["Authorization"] == "Bearer re_test"
        body = json.loads(request.content)
        assert body == {
            "from": "Compliance <alerts@compliance.ch>",
            "to": ["alice@alpha.ch"],
            "subject": "Regulatorische Meldung: Test",
            "html": "<p>Test</p>",
        }

    @pytest.mark.parametrize("status_code", [400, 422, 500, 503])
    async def test_api_error(self, status_code):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(status_code, text="rejected"))
        )
        transport = ResendEmailTransport(api_key="re_test", from_email="a@b.ch", client=client)

        with pytest.raises(DeliveryFailedError) as exc_info:
            await transport.send(message())

        assert str(status_code) in str(exc_info.value)
        await transport.close()

    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = ResendEmailTransport(api_key="re_test", from_email="a@b.ch", client=client)

        with pytest.raises(DeliveryFailedError):
            await transport.send(message())

        await transport.close()


# =============================================================================
# TEST: CONCURRENT DELIVERY
# =============================================================================


class TestDeliverConcurrently:
    """Bounded fan-out with per-message outcomes."""

    async def test_outcomes_keep_input_order(self):
        transport = FakeTransport()
        transport.fail_for = {"b@example.ch"}
        messages = [message(f"{name}@example.ch") for name in "abcd"]

        outcomes = await deliver_concurrently(transport, messages, concurrency=2, timeout_seconds=1.0)

        assert [o.success for o in outcomes] == [True, False, True, True]
        assert "Mailbox unavailable" in outcomes[1].error
        assert transport.max_in_flight <= 2

    async def test_timeout(self):
        transport = FakeTransport()
        transport.hang_for = {"slow@example.ch"}

        outcomes = await deliver_concurrently(
            transport,
            [message("slow@example.ch"), message("fast@example.ch")],
            concurrency=2,
            timeout_seconds=0.1,
        )

        assert outcomes[0].success is False
        assert outcomes[0].error == "Timeout after 0.1s"
        assert outcomes[1].success is True

    async def test_unexpected_exception_only_fails_its_message(self):
        class FlakyTransport(FakeTransport):
            async def send(self, msg):
                if msg.to == "bug@example.ch":
                    raise KeyError("recipient")
                await super().send(msg)

        outcomes = await deliver_concurrently(
            FlakyTransport(),
            [message("bug@example.ch"), message("ok@example.ch")],
            concurrency=1,
            timeout_seconds=1.0,
        )

        assert outcomes[0].error.startswith("KeyError")
        assert outcomes[1].success

    async def test_empty_batch(self):
        assert await deliver_concurrently(FakeTransport(), [], concurrency=5, timeout_seconds=1.0) == []


# =============================================================================
# TEST: TRANSPORT SELECTION
# =============================================================================


class TestGetTransport:
    """Transport chosen from settings."""

    def test_log_only_without_api_key(self):
        assert isinstance(get_transport(Settings(RESEND_API_KEY=None)), LogOnlyTransport)

    async def test_resend_with_api_key(self):
        transport = get_transport(Settings(RESEND_API_KEY="re_live"))
        assert isinstance(transport, ResendEmailTransport)
        await transport.close()
