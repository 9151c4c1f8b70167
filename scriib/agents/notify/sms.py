from __future__ import annotations

from typing import Optional

from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client

from scriib.core.errors import IntegrationError
from scriib.settings import settings


class SmsError(IntegrationError):
    service = "twilio"


def get_client() -> Client:
    if not (settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_phone_number):
        raise SmsError("Twilio credentials are not configured", kind="network")
    return Client(settings.twilio_account_sid, settings.twilio_auth_token)


def send_sms(to: str, body: str, client: Optional[Client] = None) -> str:
    """Send one SMS; returns the Twilio message sid."""
    client = client or get_client()
    try:
        message = client.messages.create(body=body, from_=settings.twilio_phone_number, to=to)
    except TwilioRestException as e:
        raise SmsError(e.msg or str(e), kind="http", status_code=e.status) from e
    except TwilioException as e:
        raise SmsError(str(e), kind="network") from e
    return message.sid
