import logging
import re
from enum import Enum
from typing import Any, Dict, Optional

import httpx
from jinja2 import Template

from app.core.config import settings

logger = logging.getLogger(__name__)


class SmsTemplate(str, Enum):
    PAYMENT_RECEIVED = "payment-received"


# Text bodies for notifications that go out by SMS (FINANCE with the payments flag on)
SMS_TEMPLATES = {
    SmsTemplate.PAYMENT_RECEIVED: "Payment of {{ amount }} received. Receipt: {{ receipt_number }}. Remaining balance: {{ balance }}. Thank you!",
}

PHONE_PATTERN = re.compile(r"^\+\d{9,15}$")


class SmsService:
    """Sends text messages through an HTTP SMS gateway"""

    def __init__(self, client: Optional[httpx.Client] = None):
        self.api_url = settings.SMS_API_URL
        self.api_key = settings.SMS_API_KEY
        self.sender_id = settings.SMS_SENDER_ID
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    @staticmethod
    def normalize_phone_number(phone: str) -> str:
        digits = re.sub(r"[\s\-()]", "", phone or "")
        if digits.startswith("+"):
            return digits
        if digits.startswith("00"):
            return "+" + digits[2:]
        if digits.startswith("0"):
            return f"+{settings.SMS_DEFAULT_COUNTRY_CODE}{digits[1:]}"
        if digits.startswith(settings.SMS_DEFAULT_COUNTRY_CODE):
            return "+" + digits
        return f"+{settings.SMS_DEFAULT_COUNTRY_CODE}{digits}"

    @staticmethod
    def is_valid_phone_number(phone: str) -> bool:
        return bool(PHONE_PATTERN.match(phone or ""))

    @staticmethod
    def render_template(template: SmsTemplate, **data: Any) -> str:
        return Template(SMS_TEMPLATES[template]).render(**data)

    @staticmethod
    def _message_id(response: httpx.Response) -> Optional[str]:
        # Gateways differ: some answer JSON, some a bare "OK"
        try:
            body = response.json() if response.content else {}
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        return body.get("message_id") or body.get("id")

    def send_sms(self, to: str, message: str) -> Dict[str, Any]:
        """
        Send a single SMS.

        Returns:
            {"success": bool, "message_id": str | None, "error": str | None}
        """
        phone = self.normalize_phone_number(to)
        if not self.is_valid_phone_number(phone):
            return {"success": False, "message_id": None, "error": "Invalid phone number format"}

        if not self.is_configured:
            logger.warning(f"SMS gateway not configured; message to {phone} not sent")
            return {"success": False, "message_id": None, "error": "SMS gateway not configured"}

        payload = {"to": phone, "message": message, "from": self.sender_id}
        headers = {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}

        try:
            if self._client is not None:
                response = self._client.post(self.api_url, json=payload, headers=headers)
            else:
                with httpx.Client(timeout=settings.SMS_TIMEOUT_SECONDS) as client:
                    response = client.post(self.api_url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to send SMS to {phone}: {e}")
            return {"success": False, "message_id": None, "error": str(e)}

        message_id = self._message_id(response)
        logger.info(f"SMS sent to {phone} (id={message_id})")
        return {"success": True, "message_id": message_id, "error": None}
