"""Wiring of the schedule engine services from configuration."""

from dataclasses import dataclass
from typing import Optional

from newsletter_scheduler.infrastructure.api_clients import (
    DryRunTransport,
    HttpContentCollector,
    ResendClient,
)
from newsletter_scheduler.infrastructure.config import ApplicationConfig
from newsletter_scheduler.infrastructure.database import Database
from newsletter_scheduler.infrastructure.logging import get_logger
from newsletter_scheduler.services.collection import CollectionPlanner
from newsletter_scheduler.services.content_population import ContentPopulator
from newsletter_scheduler.services.dispatch import Dispatcher
from newsletter_scheduler.services.interfaces import ContentCollector, MailTransport
from newsletter_scheduler.services.materializer import ScheduleMaterializer
from newsletter_scheduler.services.notification import NotificationService
from newsletter_scheduler.services.rendering import EmailRenderer

logger = get_logger(__name__)


@dataclass
class ScheduleEngine:
    """All schedule engine services sharing one database."""

    config: ApplicationConfig
    database: Database
    transport: MailTransport
    collector: Optional[ContentCollector]
    planner: CollectionPlanner
    materializer: ScheduleMaterializer
    populator: ContentPopulator
    dispatcher: Dispatcher

    @classmethod
    def from_config(
        cls,
        config: ApplicationConfig,
        transport: Optional[MailTransport] = None,
        collector: Optional[ContentCollector] = None,
        dry_run: bool = False,
        database: Optional[Database] = None,
    ) -> "ScheduleEngine":
        """Build the engine, choosing real or dry-run collaborators.

        Without an explicit transport, ``dry_run`` selects the recording
        transport and anything else the Resend client. The HTTP collector is
        used only when a collector URL is configured.
        """
        database = database or Database(config.async_database_url)

        if transport is None:
            if dry_run:
                transport = DryRunTransport()
            else:
                if not config.resend_api_key:
                    logger.warning("No Resend API key configured, sends will be rejected")
                transport = ResendClient(config)

        if collector is None and config.collector_url:
            collector = HttpContentCollector(config)

        if config.is_using_test_email:
            logger.warning(
                "Using Resend test sender",
                from_email=config.newsletter_from_email,
            )

        planner = CollectionPlanner(
            database,
            interval_hours=config.collection_interval_hours,
            max_items_per_topic=config.max_items_per_collection_topic,
        )
        renderer = EmailRenderer(
            base_url=f"https://{config.domain}" if config.domain else None,
            preferences_url=config.preferences_url,
        )
        notification = NotificationService(transport)

        return cls(
            config=config,
            database=database,
            transport=transport,
            collector=collector,
            planner=planner,
            materializer=ScheduleMaterializer(
                database, planner, timezone=config.schedule_timezone
            ),
            populator=ContentPopulator(
                database,
                renderer,
                items_per_topic=config.content_items_per_topic,
                collector=collector,
                collector_timeout=config.collector_timeout,
            ),
            dispatcher=Dispatcher(
                database,
                notification,
                transport_timeout=config.transport_timeout,
                lease_seconds=config.dispatch_lease_seconds,
            ),
        )

    async def start(self) -> None:
        await self.database.init_tables()

    async def close(self) -> None:
        await self.database.close()
