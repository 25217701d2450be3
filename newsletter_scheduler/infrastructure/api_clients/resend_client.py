"""Resend client for email delivery."""

import re
import uuid
from typing import Any, Dict, List, Optional

from newsletter_scheduler.infrastructure.config import ApplicationConfig
from newsletter_scheduler.infrastructure.error_handling import TransportError
from newsletter_scheduler.models.email import SendResult

from .base import APIClientError, BaseAPIClient


class ResendClient(BaseAPIClient):
    """Mail transport backed by the Resend HTTP API."""

    service_name = "resend"

    def __init__(self, config: ApplicationConfig):
        super().__init__(
            base_url=config.resend_api_url,
            headers={"Authorization": f"Bearer {config.resend_api_key}"},
            timeout=config.request_timeout,
        )
        self.app_config = config

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        reply_to: Optional[str] = None,
        tags: Optional[List[Dict[str, str]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> SendResult:
        """Send an email via Resend.

        Args:
            to: Recipient email address
            subject: Email subject line
            html: HTML email content
            text: Plain text email content (optional)
            reply_to: Reply-to email address
            tags: Resend tags, as ``{"name": ..., "value": ...}`` dicts
            headers: Additional email headers

        Returns:
            SendResult carrying the Resend message id on success or the
            rejection reason on failure. Timeouts are raised, not reported.

        Raises:
            TransportError: If no API key is configured
        """
        if not self.app_config.resend_api_key:
            raise TransportError("Resend API key is not configured", "TRANSPORT_NOT_CONFIGURED")

        sender = self.app_config.newsletter_from_email
        if self.app_config.from_name:
            sender = f"{self.app_config.from_name} <{sender}>"

        payload: Dict[str, Any] = {
            "from": sender,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text
        if reply_to:
            payload["reply_to"] = reply_to
        if tags:
            payload["tags"] = tags
        if headers:
            payload["headers"] = headers

        try:
            result = await self._post_json(self.base_url, payload)
        except APIClientError as e:
            self.logger.warning(
                "Resend rejected email",
                recipient=to,
                status_code=e.status_code,
                error=e.message,
            )
            return SendResult.failure(e.message, status_code=e.status_code)

        message_id = result.get("id", "")
        self.logger.info("Email accepted by Resend", recipient=to, message_id=message_id)
        return SendResult.ok(message_id, recipient=to)

    def validate_email_address(self, email: str) -> bool:
        """Validate an email address format."""
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        return bool(re.match(email_pattern, email))


class DryRunTransport:
    """Mail transport that records sends without contacting a provider."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        **kwargs,
    ) -> SendResult:
        message_id = f"dry-run-{uuid.uuid4()}"
        self.sent.append({"to": to, "subject": subject, "html": html, "message_id": message_id})
        return SendResult.ok(message_id, dry_run=True, recipient=to)
