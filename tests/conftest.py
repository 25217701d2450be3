"""Shared test fixtures for newsletter scheduler tests."""

import asyncio
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from newsletter_scheduler.infrastructure.config import ApplicationConfig
from newsletter_scheduler.infrastructure.database import Database
from newsletter_scheduler.models.content import ContentItem
from newsletter_scheduler.models.email import SendResult
from newsletter_scheduler.models.schedule import NewsletterSection
from newsletter_scheduler.services.engine import ScheduleEngine

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
OWNER_ID = "owner-1"
OWNER_EMAIL = "reader@example.com"


class FakeTransport:
    """Mail transport double recording every send."""

    def __init__(
        self,
        fail_reason: Optional[str] = None,
        delay: float = 0,
        error: Optional[Exception] = None,
    ):
        self.fail_reason = fail_reason
        self.delay = delay
        self.error = error
        self.sent: List[dict] = []

    async def send(self, to, subject, html, text=None, **kwargs) -> SendResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text, **kwargs})
        if self.fail_reason:
            return SendResult.failure(self.fail_reason)
        return SendResult.ok(f"msg-{len(self.sent)}")


class FakeCollector:
    """Collector double that stores canned items for a topic when asked."""

    def __init__(self, database: Database, items_by_topic=None, error: Optional[Exception] = None):
        self.database = database
        self.items_by_topic = items_by_topic or {}
        self.error = error
        self.calls: List[str] = []

    async def collect(self, topic: str) -> List[str]:
        self.calls.append(topic)
        if self.error is not None:
            raise self.error
        items = self.items_by_topic.get(topic, [])
        if not items:
            return []
        return await self.database.upsert_content_items(items)


def make_section(
    section_id: str = "s1",
    topic: str = "AI",
    frequency: str = "weekly",
    anchor: Optional[datetime] = NOW + timedelta(days=1),
    owner_id: str = OWNER_ID,
) -> NewsletterSection:
    return NewsletterSection(
        id=section_id,
        owner_id=owner_id,
        topic=topic,
        frequency=frequency,
        anchor_send_time=anchor,
    )


def make_items(topic: str, count: int, start: datetime = NOW) -> List[ContentItem]:
    return [
        ContentItem(
            topic=topic,
            title=f"{topic} story {i}",
            url=f"https://news.example.com/{topic.lower().replace(' ', '-')}/{i}",
            source="Example News",
            published_date=start - timedelta(hours=i),
            summary=f"Summary of {topic} story {i}",
        )
        for i in range(count)
    ]


async def seed_owner(database: Database, sections, owner_id: str = OWNER_ID, email: str = OWNER_EMAIL):
    await database.create_user(email=email, name="Reader", user_id=owner_id)
    await database.replace_sections(owner_id, sections)


@pytest.fixture
def tmp_db_path():
    """Provide a temporary SQLite database path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    yield path
    try:
        os.unlink(path)
    except OSError:
        pass


@pytest.fixture
def config(tmp_db_path):
    return ApplicationConfig(
        _env_file=None,
        database_url=f"sqlite:///{tmp_db_path}",
        api_shared_secret="test-secret",
        log_to_file=False,
        transport_timeout=0.5,
        collector_timeout=0.5,
    )


@pytest.fixture
async def database(config):
    db = Database(config.async_database_url)
    await db.init_tables()
    yield db
    await db.close()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def engine(config, database, transport):
    return ScheduleEngine.from_config(config, transport=transport, database=database)
