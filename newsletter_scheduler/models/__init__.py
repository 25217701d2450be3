"""Data models for the newsletter schedule engine."""

from .content import CollectionJob, CollectionReport, CollectionStatus, ContentItem
from .email import EmailContent, SendResult
from .schedule import (
    DeliveryStatus,
    DispatchOutcome,
    DispatchResult,
    Frequency,
    MaterializeReport,
    NewsletterSection,
    PopulateOutcome,
    RenderedContent,
    ScheduledDelivery,
)
from .state import DispatchState, ProcessingError
from .user import UserProfile

__all__ = [
    "CollectionJob",
    "CollectionReport",
    "CollectionStatus",
    "ContentItem",
    "EmailContent",
    "SendResult",
    "DeliveryStatus",
    "DispatchOutcome",
    "DispatchResult",
    "Frequency",
    "MaterializeReport",
    "NewsletterSection",
    "PopulateOutcome",
    "RenderedContent",
    "ScheduledDelivery",
    "DispatchState",
    "ProcessingError",
    "UserProfile",
]
