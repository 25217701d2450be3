"""Content population for pending deliveries."""

import asyncio
from typing import Dict, List, Optional, Tuple

from newsletter_scheduler.infrastructure.database import Database
from newsletter_scheduler.infrastructure.error_handling import (
    DeliveryNotFoundError,
    handle_service_errors,
)
from newsletter_scheduler.infrastructure.logging import LoggerMixin
from newsletter_scheduler.models.content import ContentItem
from newsletter_scheduler.models.schedule import PopulateOutcome, ScheduledDelivery
from newsletter_scheduler.services.interfaces import ContentCollector
from newsletter_scheduler.services.rendering import EmailRenderer


class ContentPopulator(LoggerMixin):
    """Freezes newsletter content onto pending deliveries.

    Content is written once: a delivery that already carries rendered
    content keeps it, and concurrent populators race through a
    compare-and-set so only one rendering is stored.
    """

    def __init__(
        self,
        database: Database,
        renderer: EmailRenderer,
        items_per_topic: int = 5,
        collector: Optional[ContentCollector] = None,
        collector_timeout: float = 120.0,
    ):
        self.database = database
        self.renderer = renderer
        self.items_per_topic = items_per_topic
        self.collector = collector
        self.collector_timeout = collector_timeout

    async def resolve_topics(self, delivery: ScheduledDelivery) -> List[str]:
        """Topics of the sections a delivery refers to, in reference order."""
        topics: List[str] = []
        for section_id in delivery.section_refs:
            section = await self.database.get_section(delivery.owner_id, section_id)
            if section is None:
                self.logger.warning(
                    "Delivery refers to a missing section",
                    delivery_id=delivery.id,
                    section_id=section_id,
                )
                continue
            topic = section.topic.strip()
            if topic and topic not in topics:
                topics.append(topic)
        return topics

    async def _collect_now(self, topic: str) -> None:
        try:
            await asyncio.wait_for(self.collector.collect(topic), timeout=self.collector_timeout)
        except asyncio.TimeoutError:
            self.logger.warning(
                "On-demand collection timed out",
                topic=topic,
                timeout=self.collector_timeout,
            )
        except Exception as e:
            self.logger.warning("On-demand collection failed", topic=topic, error=str(e))

    async def _items_for(self, topic: str) -> List[ContentItem]:
        items = await self.database.query_recent(topic, self.items_per_topic)
        if items or self.collector is None:
            return items

        self.logger.info("No stored content, collecting", topic=topic)
        await self._collect_now(topic)
        return await self.database.query_recent(topic, self.items_per_topic)

    async def populate(self, delivery: ScheduledDelivery) -> PopulateOutcome:
        """Render and store content for one delivery.

        Returns:
            POPULATED when content was stored, DEFERRED when no topic had
            any items yet, otherwise the reason nothing was done.
        """
        if delivery.status.is_terminal:
            return PopulateOutcome.NOT_PENDING
        if delivery.has_content:
            return PopulateOutcome.ALREADY_RENDERED

        topics = await self.resolve_topics(delivery)
        if not topics:
            self.logger.warning("Delivery has no topics to populate", delivery_id=delivery.id)
            return PopulateOutcome.NO_TOPICS

        topic_items: List[Tuple[str, List[ContentItem]]] = []
        for topic in topics:
            topic_items.append((topic, await self._items_for(topic)))

        if not any(items for _, items in topic_items):
            self.logger.info(
                "No content available yet, deferring",
                delivery_id=delivery.id,
                topics=topics,
            )
            return PopulateOutcome.DEFERRED

        owner = await self.database.get_user(delivery.owner_id)
        content = self.renderer.render(topic_items, recipient_name=owner.name if owner else "")

        if not await self.database.save_rendered_content(delivery.id, content):
            self.logger.info("Delivery populated concurrently", delivery_id=delivery.id)
            return PopulateOutcome.ALREADY_RENDERED

        self.logger.info(
            "Delivery populated",
            delivery_id=delivery.id,
            subject=content.subject,
            items=content.item_count,
        )
        return PopulateOutcome.POPULATED

    async def populate_delivery(self, delivery_id: str) -> PopulateOutcome:
        delivery = await self.database.get_delivery(delivery_id)
        if delivery is None:
            raise DeliveryNotFoundError(
                f"Delivery {delivery_id} not found",
                "DELIVERY_NOT_FOUND",
                {"delivery_id": delivery_id},
            )
        return await self.populate(delivery)

    @handle_service_errors("ContentPopulator")
    async def populate_pending(self) -> Dict[str, PopulateOutcome]:
        """Populate every pending delivery that has no content yet."""
        outcomes: Dict[str, PopulateOutcome] = {}
        for delivery in await self.database.list_pending_without_content():
            outcomes[delivery.id] = await self.populate(delivery)

        self.logger.info(
            "Content population complete",
            processed=len(outcomes),
            populated=sum(1 for o in outcomes.values() if o == PopulateOutcome.POPULATED),
            deferred=sum(1 for o in outcomes.values() if o == PopulateOutcome.DEFERRED),
        )
        return outcomes
