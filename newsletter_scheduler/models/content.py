"""Content models for the newsletter schedule engine."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class CollectionStatus(str, Enum):
    """Status of a planned content collection."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ContentItem:
    """One collected article or snippet. ``url`` is the deduplication key."""

    topic: str
    title: str
    url: str
    source: Optional[str] = None
    published_date: Optional[datetime] = None
    body: Optional[str] = None
    summary: Optional[str] = None
    created_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def teaser(self) -> str:
        """Summary if one was generated, otherwise the start of the body."""
        if self.summary:
            return self.summary
        if self.body:
            return self.body[:150] + ("..." if len(self.body) > 150 else "")
        return "No summary available"

    def to_newsletter_item(self) -> Dict[str, Any]:
        """Shape stored inside rendered newsletter content."""
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "topic": self.topic,
            "source": self.source or "Unknown",
            "published_date": self.published_date.isoformat() if self.published_date else None,
            "summary": self.teaser,
        }


@dataclass
class CollectionJob:
    """A planned pre-fetch of content ahead of a delivery."""

    owner_id: str
    topics: List[str]
    scheduled_time: datetime
    next_delivery_date: datetime
    max_items_per_topic: int = 5
    status: CollectionStatus = CollectionStatus.PENDING
    processed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class CollectionReport:
    """Outcome of processing due collection jobs."""

    completed: int = 0
    failed: int = 0
    items_collected: int = 0
