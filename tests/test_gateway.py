from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests
from twilio.base.exceptions import TwilioRestException

from family_tasks.errors import ProviderError
from family_tasks.services.gateway import GatewayMessage, TwilioGateway

MESSAGES_URI = "/2010-04-01/Accounts/AC00000000000000000000000000000000/Messages.json"


def _gateway(create) -> TwilioGateway:
    client = MagicMock()
    client.messages.create.side_effect = create
    return TwilioGateway(client)


def _send(gateway: TwilioGateway, channel: str = "whatsapp") -> GatewayMessage:
    return gateway.send(
        channel=channel,
        to="whatsapp:+972501234567",
        from_="whatsapp:+15550000001",
        body="Reminder for Dana",
        status_callback_url="https://tasks.example.test/api/notifications/webhook",
    )


def test_send_passes_addresses_and_status_callback() -> None:
    client = MagicMock()
    client.messages.create.return_value = SimpleNamespace(sid="SM123", status="queued")
    gateway = TwilioGateway(client)

    message = _send(gateway)

    assert message == GatewayMessage(provider_id="SM123", status="queued")
    client.messages.create.assert_called_once_with(
        body="Reminder for Dana",
        to="whatsapp:+972501234567",
        from_="whatsapp:+15550000001",
        status_callback="https://tasks.example.test/api/notifications/webhook",
    )


def test_timeout_becomes_provider_error() -> None:
    gateway = _gateway(requests.Timeout("read timed out"))

    with pytest.raises(ProviderError) as excinfo:
        _send(gateway, channel="sms")

    assert excinfo.value.code == "timeout"
    assert excinfo.value.status == 504


def test_twilio_error_code_is_carried_as_string() -> None:
    gateway = _gateway(TwilioRestException(400, MESSAGES_URI, msg="Recipient not on WhatsApp", code=63007))

    with pytest.raises(ProviderError) as excinfo:
        _send(gateway)

    assert excinfo.value.code == "63007"
    assert excinfo.value.status == 400
    assert excinfo.value.ledger_text == "63007: Recipient not on WhatsApp"


def test_connection_error_becomes_provider_error() -> None:
    gateway = _gateway(requests.ConnectionError("connection refused"))

    with pytest.raises(ProviderError) as excinfo:
        _send(gateway, channel="sms")

    assert excinfo.value.code == "PROVIDER_ERROR"
    assert excinfo.value.status == 502


def test_from_exception_for_unknown_errors() -> None:
    error = ProviderError.from_exception(ValueError("bad payload"))

    assert error.code == "PROVIDER_ERROR"
    assert error.ledger_text == "PROVIDER_ERROR: bad payload"
