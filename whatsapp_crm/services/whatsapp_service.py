from typing import Optional

import httpx

from whatsapp_crm.config import settings
from whatsapp_crm.logging_config import get_logger
from whatsapp_crm.services.result import Result

logger = get_logger("whatsapp_service")


class WhatsAppService:
    """Client for the WhatsApp Cloud API send endpoint of one connected number."""

    BASE_URL = "https://graph.facebook.com/{version}"

    def __init__(
        self,
        phone_id: str,
        access_token: str,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.phone_id = phone_id
        self.access_token = access_token
        self.base_url = self.BASE_URL.format(version=api_version or settings.graph_api_version)
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds

    def _make_request(self, path: str, payload: dict) -> Result[dict]:
        url = f"{self.base_url}/{path}"
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, json=payload, headers=headers)
        except Exception as e:
            logger.error(f"WhatsApp API request failed: {e}", extra={"context": {"phone_id": self.phone_id}})
            return Result.failure(str(e), "whatsapp_request_failed", details={"message": str(e)})

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.is_success:
            logger.warning(
                "WhatsApp API error",
                extra={"context": {"phone_id": self.phone_id, "status": response.status_code, "body": body}},
            )
            return Result.failure(
                f"WhatsApp API returned {response.status_code}",
                f"whatsapp_http_{response.status_code}",
                details=body,
            )
        return Result.success(body, details=body)

    def send_text(self, to: str, text: str) -> Result[Optional[str]]:
        """Send a text message. On success the value is the provider message id, when returned."""
        result = self._make_request(
            f"{self.phone_id}/messages",
            {
                "messaging_product": "whatsapp",
                "to": to,
                "type": "text",
                "text": {"body": text},
            },
        )
        if not result.ok:
            return result

        body = result.value if isinstance(result.value, dict) else {}
        messages = body.get("messages") or []
        wa_message_id = messages[0].get("id") if messages and isinstance(messages[0], dict) else None
        return Result.success(wa_message_id, details=result.value)
