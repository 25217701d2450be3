"""Notification service handing rendered deliveries to the mail transport."""

import asyncio
from typing import Optional

from newsletter_scheduler.infrastructure.logging import LoggerMixin
from newsletter_scheduler.models.email import (
    EmailContent,
    SendResult,
    create_email_content,
    generate_email_headers,
    validate_email_content,
)
from newsletter_scheduler.models.schedule import RenderedContent, ScheduledDelivery
from newsletter_scheduler.models.user import UserProfile
from newsletter_scheduler.services.interfaces import MailTransport


class NotificationService(LoggerMixin):
    """Service for email delivery of scheduled newsletters."""

    def __init__(self, transport: MailTransport, reply_to: Optional[str] = None):
        self.transport = transport
        self.reply_to = reply_to

    def build_email(
        self,
        delivery: ScheduledDelivery,
        content: RenderedContent,
    ) -> EmailContent:
        return create_email_content(
            html=content.html,
            subject=content.subject,
            text=content.text or None,
            reply_to=self.reply_to,
            headers=generate_email_headers(delivery.id, delivery.owner_id),
            tags=[{"name": "delivery_id", "value": delivery.id}],
            metadata={"items": content.item_count},
        )

    async def send_delivery(
        self,
        delivery: ScheduledDelivery,
        recipient: UserProfile,
    ) -> SendResult:
        """Send a delivery's rendered content to its owner.

        Args:
            delivery: Pending delivery carrying rendered content
            recipient: Owner profile providing the address

        Returns:
            SendResult from the transport, or a failure when the content is
            not sendable. Transport timeouts propagate to the caller.
        """
        if delivery.rendered_content is None:
            return SendResult.failure("Delivery has no rendered content")

        email_content = self.build_email(delivery, delivery.rendered_content)
        issues = validate_email_content(email_content)
        if issues:
            self.logger.warning(
                "Email content validation failed",
                delivery_id=delivery.id,
                issues=issues,
            )
            return SendResult.failure("; ".join(issues))

        self.logger.info(
            "Sending newsletter",
            delivery_id=delivery.id,
            user_id=recipient.user_id,
            email=recipient.email,
            subject=email_content.subject,
        )

        try:
            result = await self.transport.send(
                recipient.email,
                email_content.subject,
                email_content.html,
                text=email_content.text,
                reply_to=email_content.reply_to,
                tags=email_content.tags,
                headers=email_content.headers,
            )
        except asyncio.TimeoutError:
            raise
        except Exception as e:
            self.logger.error(
                "Newsletter sending failed",
                delivery_id=delivery.id,
                error=str(e),
                exc_info=True,
            )
            return SendResult.failure(str(e))

        if result.success:
            self.logger.info(
                "Newsletter sent successfully",
                delivery_id=delivery.id,
                message_id=result.message_id,
            )
        else:
            self.logger.error(
                "Newsletter delivery failed",
                delivery_id=delivery.id,
                error=result.reason,
            )
        return result
