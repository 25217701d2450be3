"""Newsletter Scheduler

Turns recurring newsletter sections into concrete scheduled deliveries,
fills them with fresh content and sends them when they fall due, creating
the next delivery of each schedule as the previous one goes out.
"""

__version__ = "0.1.0"

from newsletter_scheduler.models.content import ContentItem
from newsletter_scheduler.models.schedule import NewsletterSection, ScheduledDelivery
from newsletter_scheduler.models.user import UserProfile

__all__ = [
    "ContentItem",
    "NewsletterSection",
    "ScheduledDelivery",
    "UserProfile",
]
