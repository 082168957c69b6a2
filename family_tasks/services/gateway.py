"""
Message Gateway Client.

Wraps the external SMS/WhatsApp sending API behind a small protocol so the
dispatcher can be exercised with a substitute client.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

import requests
from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from family_tasks.config import Settings, gateway_config_issues
from family_tasks.errors import ConfigurationError, ProviderError
from family_tasks.models.user import CHANNEL_WHATSAPP
from family_tasks.utils.logger import mask_phone
from family_tasks.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)

WHATSAPP_PREFIX = "whatsapp:"


def address_for(channel: str, number: str) -> str:
    """Channel-qualified address: ``whatsapp:+…`` for WhatsApp, bare E.164 for SMS."""
    if channel == CHANNEL_WHATSAPP:
        return f"{WHATSAPP_PREFIX}{number}"
    return number


@dataclass(frozen=True)
class GatewayMessage:
    """Synchronous outcome of a send: provider id plus the initial status."""

    provider_id: str
    status: str


class MessageGateway(Protocol):
    def send(
        self,
        channel: str,
        to: str,
        from_: str,
        body: str,
        status_callback_url: str,
    ) -> GatewayMessage: ...


class TwilioGateway:
    """Gateway client backed by the Twilio REST API."""

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "TwilioGateway":
        """
        Build the client once at process start.

        Raises:
            ConfigurationError: If credentials or numbers are missing or malformed
        """
        issues = gateway_config_issues(settings)
        if issues:
            raise ConfigurationError(
                "messaging gateway is not configured: " + "; ".join(issues),
                details={"issues": issues},
            )
        http_client = TwilioHttpClient(timeout=settings.gateway_timeout_seconds)
        client = Client(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            http_client=http_client,
        )
        logger.info(
            f"Twilio gateway initialized (timeout={settings.gateway_timeout_seconds}s, "
            f"whatsapp={'on' if settings.whatsapp_configured else 'off'})"
        )
        return cls(client)

    @metrics_collector.time_operation("gateway_send_seconds")
    def send(
        self,
        channel: str,
        to: str,
        from_: str,
        body: str,
        status_callback_url: str,
    ) -> GatewayMessage:
        """
        Send one message.

        Raises:
            ProviderError: On any rejection, transport failure or timeout
        """
        try:
            message = self.client.messages.create(
                body=body,
                to=to,
                from_=from_,
                status_callback=status_callback_url,
            )
        except (TwilioException, requests.RequestException) as e:
            error = ProviderError.from_exception(e)
            logger.warning(f"Gateway rejected {channel} message to {mask_phone(to)}: {error.ledger_text}")
            raise error from e

        logger.debug(f"Gateway accepted {channel} message {message.sid} with status {message.status}")
        return GatewayMessage(provider_id=message.sid, status=str(message.status or ""))
