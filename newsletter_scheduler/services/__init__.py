"""Services for scheduling, populating and dispatching newsletters."""

from .collection import CollectionPlanner
from .content_population import ContentPopulator
from .dispatch import Dispatcher
from .engine import ScheduleEngine
from .frequency import advance, parse_frequency
from .materializer import ScheduleMaterializer
from .notification import NotificationService
from .rendering import EmailRenderer

__all__ = [
    "CollectionPlanner",
    "ContentPopulator",
    "Dispatcher",
    "ScheduleEngine",
    "advance",
    "parse_frequency",
    "ScheduleMaterializer",
    "NotificationService",
    "EmailRenderer",
]
