"""
Message transport: hands individual messages to an outbound channel.

This module is responsible for:
1. The transport contract (send one message, raise DeliveryFailedError on failure)
2. Concrete transports (Resend e-mail API, log-only for unconfigured environments)
3. Bounded concurrent delivery of a batch of messages with per-message timeouts
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

import httpx

from ..core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class DeliveryFailedError(Exception):
    """A single message could not be delivered."""
    pass


@dataclass(frozen=True)
class OutboundMessage:
    """One individualized message for one recipient."""
    to: str
    subject: str
    html: str
    recipient_name: str | None = None


@dataclass
class DeliveryOutcome:
    """Result of one send attempt."""
    success: bool
    error: str | None = None


# =============================================================================
# TRANSPORTS
# =============================================================================


class MessageTransport(ABC):
    """Abstract base for outbound message channels."""

    @abstractmethod
    async def send(self, message: OutboundMessage) -> None:
        """
        Deliver a message.

        Raises:
            DeliveryFailedError: the channel rejected or could not take the message
        """
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None


class ResendEmailTransport(MessageTransport):
    """E-mail delivery through the Resend HTTP API."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        api_url: str = "https://api.resend.com/emails",
        client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._from_email = from_email
        self._api_url = api_url
        self._client = client or httpx.AsyncClient(timeout=30.0)

    async def close(self) -> None:
        await self._client.aclose()

    async def send(self, message: OutboundMessage) -> None:
        try:
            response = await self._client.post(
                self._api_url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={
                    "from": self._from_email,
                    "to": [message.to],
                    "subject": message.subject,
                    "html": message.html,
                },
            )
        except httpx.HTTPError as e:
            raise DeliveryFailedError(f"Resend request failed: {e}") from e

        if response.is_error:
            raise DeliveryFailedError(
                f"Resend API error {response.status_code}: {response.text}"
            )


class LogOnlyTransport(MessageTransport):
    """Logs messages instead of sending them (no e-mail provider configured)."""

    async def send(self, message: OutboundMessage) -> None:
        logger.info(f"[EMAIL] To: {message.to}, Subject: {message.subject}")


def get_transport(settings: Settings | None = None) -> MessageTransport:
    """Pick the transport for the current configuration."""
    settings = settings or get_settings()
    if settings.email_enabled:
        return ResendEmailTransport(
            api_key=settings.resend_api_key,
            from_email=settings.from_email,
            api_url=settings.resend_api_url,
        )
    logger.info("No e-mail provider configured, messages will only be logged")
    return LogOnlyTransport()


# =============================================================================
# CONCURRENT DELIVERY
# =============================================================================


async def deliver_concurrently(
    transport: MessageTransport,
    messages: Sequence[OutboundMessage],
    concurrency: int,
    timeout_seconds: float,
) -> list[DeliveryOutcome]:
    """
    Send every message, at most `concurrency` at a time.

    Each send is independent: a failure or timeout is recorded in its own
    outcome and never cancels the others. Outcomes are returned in the same
    order as `messages`. There is no retry here; resending is an explicit
    operator action.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _deliver(message: OutboundMessage) -> DeliveryOutcome:
        async with semaphore:
            try:
                await asyncio.wait_for(transport.send(message), timeout=timeout_seconds)
                return DeliveryOutcome(success=True)
            except asyncio.TimeoutError:
                error = f"Timeout after {timeout_seconds:g}s"
            except DeliveryFailedError as e:
                error = str(e)
            except Exception as e:
                # Unexpected transport bug: still only this recipient fails
                logger.exception(f"Transport raised while sending to {message.to}")
                error = f"{type(e).__name__}: {e}"

        logger.warning(f"Delivery to {message.to} failed: {error}")
        return DeliveryOutcome(success=False, error=error)

    return list(await asyncio.gather(*(_deliver(m) for m in messages)))
