"""Email models for the newsletter schedule engine."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup


@dataclass
class EmailContent:
    """Complete email content ready for delivery."""

    html: str
    text: str
    subject: str
    from_email: Optional[str] = None
    from_name: Optional[str] = None
    reply_to: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    tags: List[Dict[str, str]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def estimated_size_kb(self) -> float:
        """Estimate email size in KB."""
        html_size = len(self.html.encode('utf-8'))
        text_size = len(self.text.encode('utf-8'))
        return (html_size + text_size) / 1024


@dataclass
class SendResult:
    """Result of handing one email to the mail transport."""

    success: bool
    message_id: Optional[str] = None
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    attempted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def ok(cls, message_id: Optional[str] = None, **metadata) -> "SendResult":
        return cls(success=True, message_id=message_id, metadata=metadata)

    @classmethod
    def failure(cls, reason: str, **metadata) -> "SendResult":
        return cls(success=False, reason=reason, metadata=metadata)


def create_email_content(
    html: str,
    subject: str,
    text: Optional[str] = None,
    **kwargs
) -> EmailContent:
    """Create EmailContent, deriving the text part from HTML when absent."""
    return EmailContent(
        html=html,
        text=text or extract_text_from_html(html),
        subject=subject,
        **kwargs
    )


def generate_email_headers(delivery_id: str = "", owner_id: str = "") -> Dict[str, str]:
    """Generate standard email headers."""
    headers = {
        "X-Newsletter-Type": "scheduled",
        "X-Mailer": "Newsletter-Scheduler",
    }

    if delivery_id:
        headers["X-Delivery-ID"] = delivery_id

    if owner_id:
        headers["X-Owner-ID"] = owner_id

    return headers


def extract_text_from_html(html: str) -> str:
    """Extract plain text from HTML for text version."""
    soup = BeautifulSoup(html, 'html.parser')

    for element in soup(["script", "style"]):
        element.decompose()

    text = soup.get_text()
    lines = (line.strip() for line in text.splitlines())
    chunks = (phrase.strip() for line in lines for phrase in line.split("  "))
    return '\n'.join(chunk for chunk in chunks if chunk)


def validate_email_content(content: EmailContent) -> List[str]:
    """Validate email content and return list of issues."""
    issues = []

    if not content.html:
        issues.append("HTML content is empty")

    if not content.subject:
        issues.append("Subject line is empty")

    if len(content.subject) > 998:
        issues.append("Subject line too long (max 998 characters)")

    if content.estimated_size_kb > 10000:
        issues.append("Email size too large (max 10MB)")

    return issues
