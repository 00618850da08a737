"""Twilio SMS client (REST API over httpx)."""

import httpx
import structlog

from app.config import is_placeholder, settings

logger = structlog.get_logger()

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class SMSDeliveryError(Exception):
    """SMS could not be handed to Twilio."""


class TwilioSMSClient:
    """Sends text messages through Twilio's Messages resource."""

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = account_sid if account_sid is not None else settings.twilio_account_sid
        self.auth_token = auth_token if auth_token is not None else settings.twilio_auth_token
        self.from_number = from_number if from_number is not None else settings.twilio_phone_number
        self.transport = transport

    @property
    def configured(self) -> bool:
        values = (self.account_sid, self.auth_token, self.from_number)
        return all(values) and not any(is_placeholder(value) for value in values)

    async def send_sms(self, to: str, body: str) -> str:
        """Send ``body`` to ``to`` (E.164) and return the message SID."""
        if not self.configured:
            raise SMSDeliveryError("Twilio is not configured")

        url = f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self.transport) as client:
                response = await client.post(
                    url,
                    data={"To": to, "From": self.from_number, "Body": body},
                    auth=(self.account_sid, self.auth_token),
                )
        except httpx.HTTPError as e:
            logger.error("sms_transport_error", error=str(e))
            raise SMSDeliveryError(str(e)) from e

        if response.status_code >= 400:
            logger.error("sms_rejected", status_code=response.status_code, body=response.text[:200])
            raise SMSDeliveryError(f"Twilio returned HTTP {response.status_code}")

        sid = response.json().get("sid", "")
        logger.info("sms_sent", sid=sid)
        return sid
