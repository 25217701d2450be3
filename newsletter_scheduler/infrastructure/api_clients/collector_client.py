"""Client for the content collection service."""

from typing import List

from newsletter_scheduler.infrastructure.config import ApplicationConfig
from newsletter_scheduler.infrastructure.error_handling import CollectorError

from .base import APIClientError, BaseAPIClient


class HttpContentCollector(BaseAPIClient):
    """Asks the collection service to fetch and store fresh items for a topic.

    The service answers ``{"ids": [...]}`` (or ``{"content_ids": [...]}``)
    listing the content items it stored.
    """

    service_name = "collector"

    def __init__(self, config: ApplicationConfig):
        headers = {"x-api-key": config.collector_api_key} if config.collector_api_key else {}
        super().__init__(
            base_url=config.collector_url,
            headers=headers,
            timeout=config.collector_timeout,
        )
        self.max_items = config.max_items_per_collection_topic

    async def collect(self, topic: str) -> List[str]:
        try:
            result = await self._post_json(
                self.base_url, {"topic": topic, "max_items": self.max_items}
            )
        except APIClientError as e:
            raise CollectorError(
                f"Content collection failed for topic {topic!r}: {e.message}",
                error_code=e.error_code,
                details={"topic": topic, "status_code": e.status_code},
            ) from e

        ids = result.get("ids", result.get("content_ids", []))
        self.logger.info("Content collected", topic=topic, items=len(ids))
        return [str(content_id) for content_id in ids]
