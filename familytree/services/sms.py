from dataclasses import dataclass
from typing import Optional

import requests
from loguru import logger

from familytree.config import settings

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


@dataclass
class SmsResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def _send_via_twilio(to: str, body: str) -> SmsResult:
    if not settings.TWILIO_ACCOUNT_SID or not settings.TWILIO_AUTH_TOKEN:
        return SmsResult(False, error="Twilio credentials not configured")

    try:
        response = requests.post(
            TWILIO_MESSAGES_URL.format(sid=settings.TWILIO_ACCOUNT_SID),
            data={"To": to, "From": settings.TWILIO_FROM_NUMBER, "Body": body},
            auth=(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
            timeout=10,
        )
    except requests.RequestException as e:
        logger.error(f"Twilio request failed: {e}")
        return SmsResult(False, error=f"Twilio error: {e}")

    if not response.ok:
        logger.error(f"Twilio rejected SMS to {to}: {response.status_code} {response.text}")
        return SmsResult(False, error=f"Twilio error: {response.text}")

    return SmsResult(True, message_id=response.json().get("sid"))


def send_sms(to: str, body: str) -> SmsResult:
    if settings.SMS_PROVIDER == "none":
        logger.info(f"[SMS TEST MODE] to={to} body={body!r}")
        return SmsResult(True, message_id="test")

    if settings.SMS_PROVIDER == "twilio":
        return _send_via_twilio(to, body)

    return SmsResult(False, error=f"Unsupported SMS provider: {settings.SMS_PROVIDER}")
