"""Collaborator protocols the schedule engine depends on."""

from typing import List, Optional, Protocol

from newsletter_scheduler.models.email import SendResult


class MailTransport(Protocol):
    """Hands a rendered email to a delivery provider."""

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        **kwargs,
    ) -> SendResult:
        ...


class ContentCollector(Protocol):
    """Fetches fresh items for a topic and stores them in the content store."""

    async def collect(self, topic: str) -> List[str]:
        ...

