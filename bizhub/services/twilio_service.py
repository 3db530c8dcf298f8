# bizhub/services/twilio_service.py

import json
import re
from typing import Dict, List, Optional

import httpx
from loguru import logger
from pydantic import BaseModel

from bizhub.core.config import Settings, settings
from bizhub.core.logging_config import trace_id_var

SMS_MAX_LENGTH = 160

# Twilio error codes surfaced to API clients
TWILIO_ERROR_CODES: Dict[int, str] = {
    21211: "INVALID_PHONE",
    21614: "INVALID_PHONE",
    21608: "UNVERIFIED_NUMBER",
    20003: "AUTH_FAILED",
}


class ProviderResult(BaseModel):
    success: bool
    to: str
    code: str = "OK"
    sid: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None


def digits_only(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


class TwilioMessagingService:
    """SMS and WhatsApp delivery through Twilio's Messages REST endpoint."""

    def __init__(self, config: Settings = settings):
        self.config = config

    @property
    def whatsapp_configured(self) -> bool:
        return self.config.whatsapp_configured

    @property
    def sms_configured(self) -> bool:
        return self.config.sms_configured

    def missing_whatsapp_config(self) -> List[str]:
        keys = ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_WHATSAPP_NUMBER")
        return [k for k in keys if not getattr(self.config, k)]

    def missing_sms_config(self) -> List[str]:
        keys = ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_SMS_NUMBER")
        return [k for k in keys if not getattr(self.config, k)]

    async def _create_message(self, sender: str, recipient: str, body: str) -> ProviderResult:
        log = logger.bind(trace_id=trace_id_var.get(), service="TwilioService", recipient=recipient)
        api_url = f"{self.config.TWILIO_API_BASE_URL}/Accounts/{self.config.TWILIO_ACCOUNT_SID}/Messages.json"
        log.info("Sending message via Twilio API...")
        try:
            async with httpx.AsyncClient(timeout=25.0, http2=True) as client:
                response = await client.post(
                    api_url,
                    auth=(self.config.TWILIO_ACCOUNT_SID, self.config.TWILIO_AUTH_TOKEN),
                    data={"From": sender, "To": recipient, "Body": body},
                )
        except httpx.TimeoutException:
            log.error("Timeout calling Twilio API.")
            return ProviderResult(success=False, to=recipient, code="TIMEOUT", error="Messaging provider timed out")
        except httpx.RequestError as e:
            log.error(f"Network error calling Twilio API: {e}")
            return ProviderResult(success=False, to=recipient, code="SEND_FAILED", error=str(e))

        try:
            data = response.json()
        except json.JSONDecodeError:
            data = {"message": response.text[:300]}

        if 200 <= response.status_code < 300:
            log.success(f"Message accepted by Twilio. SID: {data.get('sid')}")
            return ProviderResult(success=True, to=recipient, sid=data.get("sid"), status=data.get("status"))

        error_code = data.get("code")
        code = TWILIO_ERROR_CODES.get(error_code, "SEND_FAILED")
        if response.status_code == 401:
            code = "AUTH_FAILED"
        log.error(f"Twilio API error (HTTP {response.status_code}, code {error_code}): {data.get('message')}")
        return ProviderResult(success=False, to=recipient, code=code, error=data.get("message") or "Failed to send message")

    async def send_whatsapp(self, phone: str, message: str) -> ProviderResult:
        if not self.whatsapp_configured:
            return ProviderResult(success=False, to=phone, code="WHATSAPP_NOT_CONFIGURED",
                                  error="WhatsApp service not configured")
        if not message or not message.strip():
            return ProviderResult(success=False, to=phone, code="INVALID_MESSAGE", error="Message is required")
        digits = digits_only(phone)
        if len(digits) < 10:
            return ProviderResult(success=False, to=phone, code="INVALID_PHONE",
                                  error="Phone number must contain at least 10 digits")

        sender = self.config.TWILIO_WHATSAPP_NUMBER
        if not sender.startswith("whatsapp:"):
            sender = f"whatsapp:{sender}"
        return await self._create_message(sender, f"whatsapp:+{digits}", message.strip())

    async def send_sms(self, phone: str, message: str) -> ProviderResult:
        if not self.sms_configured:
            return ProviderResult(success=False, to=phone, code="SMS_NOT_CONFIGURED", error="SMS service not configured")
        if not message or not message.strip():
            return ProviderResult(success=False, to=phone, code="INVALID_MESSAGE", error="Message is required")
        recipient = phone.strip().replace(" ", "")
        if not recipient.startswith("+"):
            recipient = f"+{recipient}"
        return await self._create_message(self.config.TWILIO_SMS_NUMBER, recipient, message.strip())


twilio_service = TwilioMessagingService()


async def get_twilio_service() -> TwilioMessagingService:
    return twilio_service
