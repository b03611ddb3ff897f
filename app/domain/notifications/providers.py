"""
Notification providers

SMS goes through the Twilio REST API, email through Resend. Providers never
raise for delivery failures; they return a SendResult carrying the error text
and HTTP status so the caller can classify it.
"""

import logging
import uuid
from typing import Optional

import httpx
import resend
from resend.exceptions import ResendError
from pydantic import BaseModel

from ... import config
from ...shared.validators import normalize_us_phone, validate_email

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"

# Initialize Resend
resend.api_key = config.RESEND_API_KEY


class SendResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


def to_e164(phone: str) -> str:
    """Normalize US numbers to +1XXXXXXXXXX; leave other +E.164 numbers alone"""
    if phone.startswith("+") and not phone.startswith("+1"):
        return phone
    return normalize_us_phone(phone)


class TwilioSMSProvider:
    """Send SMS via Twilio"""

    channel = "sms"

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
    ):
        self.account_sid = account_sid or config.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or config.TWILIO_AUTH_TOKEN
        self.from_number = from_number or config.TWILIO_PHONE_NUMBER

    async def send(self, to: str, body: str, subject: Optional[str] = None, html: Optional[str] = None) -> SendResult:
        if not self.account_sid or not self.auth_token:
            logger.error("❌ Twilio credentials not configured")
            return SendResult(success=False, error="Twilio credentials not configured")

        try:
            to_phone = to_e164(to)
        except ValueError as e:
            logger.warning(f"⚠️ Invalid SMS recipient {to}: {e}")
            return SendResult(success=False, error=f"Invalid phone number: {to}", status_code=400)

        logger.info(f"🚀 Sending SMS to Twilio API for {to_phone}")
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json",
                    auth=(self.account_sid, self.auth_token),
                    data={"To": to_phone, "From": self.from_number, "Body": body},
                    timeout=10.0,
                )
        except httpx.TimeoutException as e:
            logger.error(f"❌ Twilio request timeout: {e}")
            return SendResult(success=False, error=f"Twilio request timeout: {e}")
        except httpx.HTTPError as e:
            logger.error(f"❌ Twilio network error: {e}")
            return SendResult(success=False, error=f"Twilio network error: {e}")

        logger.info(f"📡 Twilio API response status: {response.status_code}")

        if response.status_code in (200, 201):
            message_sid = response.json().get("sid")
            logger.info(f"✅ SMS sent successfully to {to_phone} (SID: {message_sid})")
            return SendResult(success=True, message_id=message_sid)

        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        error_message = error_data.get("message") or f"Twilio API error (HTTP {response.status_code})"
        error_code = error_data.get("code")
        logger.error(f"❌ Twilio API error [{error_code}]: {error_message}")
        return SendResult(
            success=False,
            error=f"[{error_code}] {error_message}" if error_code else error_message,
            status_code=response.status_code,
        )


class ResendEmailProvider:
    """Send email via Resend"""

    channel = "email"

    def __init__(self, from_address: Optional[str] = None):
        self.from_address = from_address or config.EMAIL_FROM_ADDRESS

    async def send(self, to: str, body: str, subject: Optional[str] = None, html: Optional[str] = None) -> SendResult:
        if not resend.api_key:
            logger.error("❌ RESEND_API_KEY not configured")
            return SendResult(success=False, error="Email provider not configured")

        try:
            to = validate_email(to)
        except ValueError:
            logger.warning(f"⚠️ Invalid email recipient {to}")
            return SendResult(success=False, error=f"Invalid email address: {to}", status_code=400)

        email_data = {
            "from": self.from_address,
            "to": [to],
            "subject": subject or config.BUSINESS_CONTEXT["name"],
            "text": body,
        }
        if html:
            email_data["html"] = html

        try:
            response = resend.Emails.send(email_data)
        except ResendError as e:
            status_code = getattr(e, "code", None)
            logger.error(f"❌ Email send error to {to}: {e}")
            return SendResult(
                success=False,
                error=str(e),
                status_code=status_code if isinstance(status_code, int) else None,
            )
        except Exception as e:
            logger.error(f"❌ Email send error to {to}: {e}")
            return SendResult(success=False, error=str(e))

        message_id = response.get("id") if isinstance(response, dict) else None
        logger.info(f"✅ Email sent successfully via Resend to {to} ({message_id})")
        return SendResult(success=True, message_id=message_id)


class LogOnlyProvider:
    """Development provider: logs the message instead of delivering it"""

    def __init__(self, channel: str):
        self.channel = channel

    async def send(self, to: str, body: str, subject: Optional[str] = None, html: Optional[str] = None) -> SendResult:
        logger.info(f"📱 [DEV] {self.channel} to {to}: {subject + ' | ' if subject else ''}{body}")
        return SendResult(success=True, message_id=f"dev-{uuid.uuid4().hex[:12]}")


def get_sms_provider():
    if config.DEV_MODE and not (config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN):
        return LogOnlyProvider("sms")
    return TwilioSMSProvider()


def get_email_provider():
    if config.DEV_MODE and not config.RESEND_API_KEY:
        return LogOnlyProvider("email")
    return ResendEmailProvider()
