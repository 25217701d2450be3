"""Schedule models: newsletter sections and the deliveries materialized from them."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class Frequency(str, Enum):
    """Recurrence of a newsletter section."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"


class DeliveryStatus(str, Enum):
    """Lifecycle of a scheduled delivery. SENT and FAILED are terminal."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not DeliveryStatus.PENDING


@dataclass
class NewsletterSection:
    """A user-defined recurring topic subscription."""

    id: str
    owner_id: str
    topic: str
    frequency: str = Frequency.WEEKLY.value
    instructions: str = ""
    other_guidelines: str = ""
    anchor_send_time: Optional[datetime] = None
    next_anchor_time: Optional[datetime] = None
    position: int = 0
    updated_at: Optional[datetime] = None


@dataclass
class RenderedContent:
    """Populated newsletter body frozen onto a delivery."""

    subject: str
    introduction: str
    items: List[Dict[str, Any]]
    html: str
    text: str = ""
    rendered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def item_count(self) -> int:
        return len(self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "introduction": self.introduction,
            "items": self.items,
            "html": self.html,
            "text": self.text,
            "rendered_at": self.rendered_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RenderedContent":
        rendered_at = data.get("rendered_at")
        return cls(
            subject=data.get("subject", ""),
            introduction=data.get("introduction", ""),
            items=list(data.get("items") or []),
            html=data.get("html", ""),
            text=data.get("text", ""),
            rendered_at=(
                datetime.fromisoformat(rendered_at) if rendered_at
                else datetime.now(timezone.utc)
            ),
        )


@dataclass
class ScheduledDelivery:
    """One concrete, materialized newsletter send.

    ``schedule_section_id`` carries the identity of the recurring schedule
    across delivery instances; ``section_refs`` lists every section whose
    content the delivery aggregates.
    """

    owner_id: str
    schedule_section_id: str
    send_date: datetime
    next_date: datetime
    section_refs: List[str] = field(default_factory=list)
    status: DeliveryStatus = DeliveryStatus.PENDING
    frequency: str = Frequency.WEEKLY.value
    timezone: str = "UTC"
    rendered_content: Optional[RenderedContent] = None
    error_detail: Optional[str] = None
    claimed_at: Optional[datetime] = None
    provider_message_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def has_content(self) -> bool:
        return self.rendered_content is not None

    def is_due(self, now: datetime) -> bool:
        return self.send_date <= now


@dataclass
class MaterializeReport:
    """Outcome of one materialization pass."""

    created: int = 0
    existing: int = 0
    skipped_past: int = 0
    skipped_invalid: int = 0
    created_ids: List[str] = field(default_factory=list)

    def merge(self, other: "MaterializeReport") -> None:
        self.created += other.created
        self.existing += other.existing
        self.skipped_past += other.skipped_past
        self.skipped_invalid += other.skipped_invalid
        self.created_ids.extend(other.created_ids)


class PopulateOutcome(str, Enum):
    """Result of a content population attempt."""

    POPULATED = "populated"
    DEFERRED = "deferred"
    ALREADY_RENDERED = "already_rendered"
    NOT_PENDING = "not_pending"
    NO_TOPICS = "no_topics"


class DispatchOutcome(str, Enum):
    """Result of a dispatch attempt."""

    SENT = "sent"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    NOT_PENDING = "not_pending"
    NOT_DUE = "not_due"
    TIMED_OUT = "timed_out"
    CONFLICT = "conflict"
    CONTINUITY_BROKEN = "continuity_broken"


@dataclass
class DispatchResult:
    """What happened to one delivery during dispatch."""

    delivery_id: str
    outcome: DispatchOutcome
    next_delivery_id: Optional[str] = None
    message_id: Optional[str] = None
    error_detail: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == DispatchOutcome.SENT


# Pydantic models for API serialization
class DispatchResultModel(BaseModel):
    """Pydantic model for DispatchResult."""

    delivery_id: str
    outcome: DispatchOutcome
    next_delivery_id: Optional[str] = None
    message_id: Optional[str] = None
    error_detail: Optional[str] = None

    model_config = {"use_enum_values": True}

    @classmethod
    def from_result(cls, result: DispatchResult) -> "DispatchResultModel":
        return cls(
            delivery_id=result.delivery_id,
            outcome=result.outcome,
            next_delivery_id=result.next_delivery_id,
            message_id=result.message_id,
            error_detail=result.error_detail,
        )
