"""Database management and models for the newsletter schedule engine.

Timestamps are stored as naive UTC and returned to callers as aware UTC
datetimes.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import (
    JSON, Column, DateTime, ForeignKey, Index, Integer,
    String, Text, UniqueConstraint, func, or_,
)
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import delete, select, update

from newsletter_scheduler.infrastructure.logging import get_logger
from newsletter_scheduler.models.content import CollectionJob, CollectionStatus, ContentItem
from newsletter_scheduler.models.schedule import (
    DeliveryStatus,
    NewsletterSection,
    RenderedContent,
    ScheduledDelivery,
)
from newsletter_scheduler.models.user import UserProfile

Base = declarative_base()
logger = get_logger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime to the naive UTC form stored in the database."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive timestamp read from the database."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class User(Base):
    """Newsletter owner and recipient."""

    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    timezone = Column(String(50), default="UTC", nullable=False)
    created_at = Column(DateTime, default=_utcnow_naive, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"


class NewsletterSectionRecord(Base):
    """A recurring topic subscription. Section ids are unique per owner."""

    __tablename__ = "newsletter_sections"

    owner_id = Column(String(64), ForeignKey("users.id"), primary_key=True)
    id = Column(String(64), primary_key=True)
    topic = Column(String(255), nullable=False, default="")
    instructions = Column(Text, nullable=False, default="")
    frequency = Column(String(32), nullable=False, default="weekly")
    other_guidelines = Column(Text, nullable=False, default="")
    anchor_send_time = Column(DateTime, nullable=True)
    next_anchor_time = Column(DateTime, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=_utcnow_naive, nullable=False)
    updated_at = Column(DateTime, default=_utcnow_naive, onupdate=_utcnow_naive)


class ScheduledDeliveryRecord(Base):
    """One materialized newsletter send."""

    __tablename__ = "scheduled_deliveries"

    id = Column(String(64), primary_key=True, default=_new_id)
    owner_id = Column(String(64), nullable=False)
    schedule_section_id = Column(String(64), nullable=False)
    section_refs = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default=DeliveryStatus.PENDING.value)
    send_date = Column(DateTime, nullable=False)
    next_date = Column(DateTime, nullable=False)
    frequency = Column(String(32), nullable=False, default="weekly")
    timezone = Column(String(50), nullable=False, default="UTC")
    rendered_content = Column(JSON(none_as_null=True), nullable=True)
    error_detail = Column(Text, nullable=True)
    # Set while a dispatcher holds the send; cleared again if the send times out
    claimed_at = Column(DateTime, nullable=True)
    provider_message_id = Column(String(255), nullable=True)
    sent_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_utcnow_naive, nullable=False)
    updated_at = Column(DateTime, default=_utcnow_naive, onupdate=_utcnow_naive)

    __table_args__ = (
        UniqueConstraint(
            "owner_id", "schedule_section_id", "send_date",
            name="uq_delivery_schedule_slot",
        ),
        Index("idx_scheduled_deliveries_status_send", "status", "send_date"),
        Index("idx_scheduled_deliveries_owner", "owner_id"),
    )


class ContentItemRecord(Base):
    """Collected article, deduplicated by URL."""

    __tablename__ = "content_items"

    id = Column(String(64), primary_key=True, default=_new_id)
    topic = Column(String(255), nullable=False)
    title = Column(String(500), nullable=False)
    url = Column(String(1000), nullable=False, unique=True)
    source = Column(String(255), nullable=True)
    published_date = Column(DateTime, nullable=True)
    body = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow_naive, nullable=False)

    __table_args__ = (
        Index("idx_content_items_topic_published", "topic", "published_date"),
    )


class CollectionJobRecord(Base):
    """Planned content collection ahead of a delivery."""

    __tablename__ = "content_collection_jobs"

    id = Column(String(64), primary_key=True, default=_new_id)
    owner_id = Column(String(64), nullable=False)
    topics = Column(JSON, nullable=False, default=list)
    scheduled_time = Column(DateTime, nullable=False)
    next_delivery_date = Column(DateTime, nullable=False)
    max_items_per_topic = Column(Integer, nullable=False, default=5)
    status = Column(String(20), nullable=False, default=CollectionStatus.PENDING.value)
    processed_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow_naive, nullable=False)

    __table_args__ = (
        Index("idx_collection_jobs_status_time", "status", "scheduled_time"),
    )


def _to_section(row: NewsletterSectionRecord) -> NewsletterSection:
    return NewsletterSection(
        id=row.id,
        owner_id=row.owner_id,
        topic=row.topic,
        frequency=row.frequency,
        instructions=row.instructions,
        other_guidelines=row.other_guidelines,
        anchor_send_time=from_db_time(row.anchor_send_time),
        next_anchor_time=from_db_time(row.next_anchor_time),
        position=row.position,
        updated_at=from_db_time(row.updated_at),
    )


def _to_delivery(row: ScheduledDeliveryRecord) -> ScheduledDelivery:
    return ScheduledDelivery(
        id=row.id,
        owner_id=row.owner_id,
        schedule_section_id=row.schedule_section_id,
        section_refs=list(row.section_refs or []),
        status=DeliveryStatus(row.status),
        send_date=from_db_time(row.send_date),
        next_date=from_db_time(row.next_date),
        frequency=row.frequency,
        timezone=row.timezone,
        rendered_content=(
            RenderedContent.from_dict(row.rendered_content)
            if row.rendered_content is not None else None
        ),
        error_detail=row.error_detail,
        claimed_at=from_db_time(row.claimed_at),
        provider_message_id=row.provider_message_id,
        sent_at=from_db_time(row.sent_at),
        failed_at=from_db_time(row.failed_at),
        created_at=from_db_time(row.created_at),
        updated_at=from_db_time(row.updated_at),
    )


def _to_delivery_record(delivery: ScheduledDelivery) -> ScheduledDeliveryRecord:
    return ScheduledDeliveryRecord(
        id=delivery.id,
        owner_id=delivery.owner_id,
        schedule_section_id=delivery.schedule_section_id,
        section_refs=list(delivery.section_refs),
        status=delivery.status.value,
        send_date=to_db_time(delivery.send_date),
        next_date=to_db_time(delivery.next_date),
        frequency=delivery.frequency,
        timezone=delivery.timezone,
        rendered_content=(
            delivery.rendered_content.to_dict() if delivery.rendered_content else None
        ),
        error_detail=delivery.error_detail,
    )


def _to_content_item(row: ContentItemRecord) -> ContentItem:
    return ContentItem(
        id=row.id,
        topic=row.topic,
        title=row.title,
        url=row.url,
        source=row.source,
        published_date=from_db_time(row.published_date),
        body=row.body,
        summary=row.summary,
        created_at=from_db_time(row.created_at),
    )


def _to_collection_job(row: CollectionJobRecord) -> CollectionJob:
    return CollectionJob(
        id=row.id,
        owner_id=row.owner_id,
        topics=list(row.topics or []),
        scheduled_time=from_db_time(row.scheduled_time),
        next_delivery_date=from_db_time(row.next_delivery_date),
        max_items_per_topic=row.max_items_per_topic,
        status=CollectionStatus(row.status),
        processed_at=from_db_time(row.processed_at),
        error_message=row.error_message,
        created_at=from_db_time(row.created_at),
    )


class Database:
    """Database manager with async support."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = create_async_engine(
            database_url,
            echo=False,  # Set to True for SQL debugging
            pool_pre_ping=True,
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def init_tables(self) -> None:
        """Initialize database tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connections."""
        await self.engine.dispose()

    def get_session(self) -> AsyncSession:
        """Get database session."""
        return self.session_factory()

    # User operations
    async def create_user(
        self,
        email: str,
        name: str = "",
        timezone: str = "UTC",
        user_id: Optional[str] = None,
    ) -> UserProfile:
        """Create a new user."""
        async with self.get_session() as session:
            user = User(
                id=user_id or _new_id(),
                email=email,
                name=name,
                timezone=timezone,
            )
            session.add(user)
            await session.commit()
            return UserProfile(
                user_id=user.id,
                email=user.email,
                name=user.name or "",
                timezone=user.timezone,
                created_at=from_db_time(user.created_at),
            )

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        """Get user by ID."""
        async with self.get_session() as session:
            user = await session.get(User, user_id)
            if user is None:
                return None
            return UserProfile(
                user_id=user.id,
                email=user.email,
                name=user.name or "",
                timezone=user.timezone,
                created_at=from_db_time(user.created_at),
            )

    # Section operations
    async def replace_sections(self, owner_id: str, sections: Sequence[NewsletterSection]) -> None:
        """Replace an owner's section configuration, as saved from the editor."""
        async with self.get_session() as session:
            await session.execute(
                delete(NewsletterSectionRecord).where(NewsletterSectionRecord.owner_id == owner_id)
            )
            for position, section in enumerate(sections):
                session.add(NewsletterSectionRecord(
                    owner_id=owner_id,
                    id=section.id,
                    topic=section.topic,
                    instructions=section.instructions,
                    frequency=section.frequency,
                    other_guidelines=section.other_guidelines,
                    anchor_send_time=to_db_time(section.anchor_send_time),
                    next_anchor_time=to_db_time(section.next_anchor_time),
                    position=position,
                ))
            await session.commit()

    async def get_sections(self, owner_id: str) -> List[NewsletterSection]:
        """Get an owner's sections in editor order."""
        async with self.get_session() as session:
            result = await session.execute(
                select(NewsletterSectionRecord)
                .where(NewsletterSectionRecord.owner_id == owner_id)
                .order_by(NewsletterSectionRecord.position)
            )
            return [_to_section(row) for row in result.scalars().all()]

    async def get_section(self, owner_id: str, section_id: str) -> Optional[NewsletterSection]:
        async with self.get_session() as session:
            row = await session.get(NewsletterSectionRecord, (owner_id, section_id))
            return _to_section(row) if row else None

    async def list_owner_ids(self) -> List[str]:
        """Owners that have at least one section configured."""
        async with self.get_session() as session:
            result = await session.execute(
                select(NewsletterSectionRecord.owner_id)
                .distinct()
                .order_by(NewsletterSectionRecord.owner_id)
            )
            return list(result.scalars().all())

    async def update_section_anchors(
        self,
        owner_id: str,
        section_id: str,
        send_date: datetime,
        next_date: datetime,
    ) -> bool:
        """Set a section's anchor times. Returns False if the section is gone."""
        async with self.get_session() as session:
            result = await session.execute(
                update(NewsletterSectionRecord)
                .where(
                    NewsletterSectionRecord.owner_id == owner_id,
                    NewsletterSectionRecord.id == section_id,
                )
                .values(
                    anchor_send_time=to_db_time(send_date),
                    next_anchor_time=to_db_time(next_date),
                    updated_at=_utcnow_naive(),
                )
            )
            await session.commit()
            return result.rowcount > 0

    # Delivery operations
    async def get_delivery(self, delivery_id: str) -> Optional[ScheduledDelivery]:
        async with self.get_session() as session:
            row = await session.get(ScheduledDeliveryRecord, delivery_id)
            return _to_delivery(row) if row else None

    async def get_pending_delivery(
        self,
        owner_id: str,
        section_id: str,
        send_date: datetime,
    ) -> Optional[ScheduledDelivery]:
        """Find the pending delivery occupying a schedule slot."""
        async with self.get_session() as session:
            result = await session.execute(
                select(ScheduledDeliveryRecord).where(
                    ScheduledDeliveryRecord.owner_id == owner_id,
                    ScheduledDeliveryRecord.schedule_section_id == section_id,
                    ScheduledDeliveryRecord.send_date == to_db_time(send_date),
                    ScheduledDeliveryRecord.status == DeliveryStatus.PENDING.value,
                )
            )
            row = result.scalars().first()
            return _to_delivery(row) if row else None

    async def _find_slot_id(
        self,
        session: AsyncSession,
        owner_id: str,
        section_id: str,
        send_date: datetime,
    ) -> Optional[str]:
        result = await session.execute(
            select(ScheduledDeliveryRecord.id).where(
                ScheduledDeliveryRecord.owner_id == owner_id,
                ScheduledDeliveryRecord.schedule_section_id == section_id,
                ScheduledDeliveryRecord.send_date == to_db_time(send_date),
            )
        )
        return result.scalars().first()

    async def insert_delivery(self, delivery: ScheduledDelivery) -> Tuple[str, bool]:
        """Insert a delivery unless its schedule slot is taken.

        Returns the id occupying the slot and whether this call created it.
        The unique constraint on (owner, schedule section, send date) makes
        concurrent inserts converge on a single row.
        """
        async with self.get_session() as session:
            session.add(_to_delivery_record(delivery))
            try:
                await session.commit()
                return delivery.id, True
            except IntegrityError:
                await session.rollback()
                existing_id = await self._find_slot_id(
                    session, delivery.owner_id, delivery.schedule_section_id, delivery.send_date
                )
                if existing_id is None:
                    raise
                return existing_id, False

    async def list_deliveries(
        self,
        owner_id: str,
        status: Optional[DeliveryStatus] = None,
    ) -> List[ScheduledDelivery]:
        async with self.get_session() as session:
            stmt = (
                select(ScheduledDeliveryRecord)
                .where(ScheduledDeliveryRecord.owner_id == owner_id)
                .order_by(ScheduledDeliveryRecord.send_date)
            )
            if status is not None:
                stmt = stmt.where(ScheduledDeliveryRecord.status == status.value)
            result = await session.execute(stmt)
            return [_to_delivery(row) for row in result.scalars().all()]

    async def list_due_deliveries(self, now: datetime) -> List[ScheduledDelivery]:
        """Pending deliveries whose send date has passed, oldest first."""
        async with self.get_session() as session:
            result = await session.execute(
                select(ScheduledDeliveryRecord)
                .where(
                    ScheduledDeliveryRecord.status == DeliveryStatus.PENDING.value,
                    ScheduledDeliveryRecord.send_date <= to_db_time(now),
                )
                .order_by(ScheduledDeliveryRecord.send_date)
            )
            return [_to_delivery(row) for row in result.scalars().all()]

    async def list_pending_without_content(self) -> List[ScheduledDelivery]:
        async with self.get_session() as session:
            result = await session.execute(
                select(ScheduledDeliveryRecord)
                .where(
                    ScheduledDeliveryRecord.status == DeliveryStatus.PENDING.value,
                    ScheduledDeliveryRecord.rendered_content.is_(None),
                )
                .order_by(ScheduledDeliveryRecord.send_date)
            )
            return [_to_delivery(row) for row in result.scalars().all()]

    async def save_rendered_content(self, delivery_id: str, content: RenderedContent) -> bool:
        """Attach content to a pending delivery that has none yet.

        Returns False when the delivery already has content or has left the
        pending state; existing content is never overwritten.
        """
        async with self.get_session() as session:
            result = await session.execute(
                update(ScheduledDeliveryRecord)
                .where(
                    ScheduledDeliveryRecord.id == delivery_id,
                    ScheduledDeliveryRecord.status == DeliveryStatus.PENDING.value,
                    ScheduledDeliveryRecord.rendered_content.is_(None),
                )
                .values(rendered_content=content.to_dict(), updated_at=_utcnow_naive())
            )
            await session.commit()
            return result.rowcount > 0

    async def claim_delivery(self, delivery_id: str, lease_seconds: float) -> bool:
        """Take the exclusive right to send a pending delivery.

        Only one caller wins while the claim is held. A claim older than
        ``lease_seconds`` is treated as abandoned and can be taken over.
        """
        now = _utcnow_naive()
        async with self.get_session() as session:
            result = await session.execute(
                update(ScheduledDeliveryRecord)
                .where(
                    ScheduledDeliveryRecord.id == delivery_id,
                    ScheduledDeliveryRecord.status == DeliveryStatus.PENDING.value,
                    or_(
                        ScheduledDeliveryRecord.claimed_at.is_(None),
                        ScheduledDeliveryRecord.claimed_at
                        < now - timedelta(seconds=lease_seconds),
                    ),
                )
                .values(claimed_at=now, updated_at=now)
            )
            await session.commit()
            return result.rowcount > 0

    async def release_claim(self, delivery_id: str) -> bool:
        """Drop the send claim of a delivery that is still pending."""
        async with self.get_session() as session:
            result = await session.execute(
                update(ScheduledDeliveryRecord)
                .where(
                    ScheduledDeliveryRecord.id == delivery_id,
                    ScheduledDeliveryRecord.status == DeliveryStatus.PENDING.value,
                )
                .values(claimed_at=None, updated_at=_utcnow_naive())
            )
            await session.commit()
            return result.rowcount > 0

    async def update_delivery_status(
        self,
        delivery_id: str,
        status: DeliveryStatus,
        detail: Optional[str] = None,
        provider_message_id: Optional[str] = None,
    ) -> bool:
        """Move a pending delivery to a terminal status.

        The update only applies while the row is still pending, so terminal
        statuses never change and concurrent callers cannot both win.
        """
        if status == DeliveryStatus.PENDING:
            raise ValueError("Deliveries can only transition out of pending")

        now = _utcnow_naive()
        values: Dict[str, Any] = {"status": status.value, "updated_at": now}
        if status == DeliveryStatus.SENT:
            values["sent_at"] = now
            values["provider_message_id"] = provider_message_id
        else:
            values["failed_at"] = now
            values["error_detail"] = detail

        async with self.get_session() as session:
            result = await session.execute(
                update(ScheduledDeliveryRecord)
                .where(
                    ScheduledDeliveryRecord.id == delivery_id,
                    ScheduledDeliveryRecord.status == DeliveryStatus.PENDING.value,
                )
                .values(**values)
            )
            await session.commit()
            return result.rowcount > 0

    async def spawn_next_delivery(
        self,
        next_delivery: ScheduledDelivery,
    ) -> Tuple[str, bool]:
        """Create the follow-up delivery and advance the section anchors in one transaction.

        Anchors only move forward: a section already anchored at or past the
        new send date is left alone, which keeps repeated calls harmless.
        """
        try:
            return await self._spawn_next_once(next_delivery)
        except IntegrityError:
            # Lost an insert race; the retry finds the winner's row
            logger.info(
                "Next delivery created concurrently",
                owner_id=next_delivery.owner_id,
                section_id=next_delivery.schedule_section_id,
            )
            return await self._spawn_next_once(next_delivery)

    async def _spawn_next_once(self, next_delivery: ScheduledDelivery) -> Tuple[str, bool]:
        async with self.get_session() as session:
            async with session.begin():
                delivery_id = await self._find_slot_id(
                    session,
                    next_delivery.owner_id,
                    next_delivery.schedule_section_id,
                    next_delivery.send_date,
                )
                created = delivery_id is None
                if created:
                    session.add(_to_delivery_record(next_delivery))
                    await session.flush()
                    delivery_id = next_delivery.id

                await session.execute(
                    update(NewsletterSectionRecord)
                    .where(
                        NewsletterSectionRecord.owner_id == next_delivery.owner_id,
                        NewsletterSectionRecord.id == next_delivery.schedule_section_id,
                        or_(
                            NewsletterSectionRecord.anchor_send_time.is_(None),
                            NewsletterSectionRecord.anchor_send_time
                            < to_db_time(next_delivery.send_date),
                        ),
                    )
                    .values(
                        anchor_send_time=to_db_time(next_delivery.send_date),
                        next_anchor_time=to_db_time(next_delivery.next_date),
                        updated_at=_utcnow_naive(),
                    )
                )
            return delivery_id, created

    # Content operations
    def _insert(self, record):
        """Dialect-specific INSERT supporting ON CONFLICT."""
        if self.engine.dialect.name == "postgresql":
            return postgresql_insert(record)
        return sqlite_insert(record)

    async def upsert_content_items(self, items: Sequence[ContentItem]) -> List[str]:
        """Insert or refresh content items keyed by URL. Returns stored ids.

        Each item is a single INSERT ... ON CONFLICT (url) DO UPDATE, so
        concurrent collections of the same URL converge on one row.
        """
        stored_ids = []
        async with self.get_session() as session:
            for item in items:
                # Insert item (upsert on conflict)
                stmt = self._insert(ContentItemRecord).values(
                    id=item.id,
                    topic=item.topic,
                    title=item.title,
                    url=item.url,
                    source=item.source,
                    published_date=to_db_time(item.published_date),
                    body=item.body,
                    summary=item.summary or None,
                    created_at=_utcnow_naive(),
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["url"],
                    set_={
                        "topic": stmt.excluded.topic,
                        "title": stmt.excluded.title,
                        "source": stmt.excluded.source,
                        "published_date": stmt.excluded.published_date,
                        "body": stmt.excluded.body,
                        # A later collection without a summary keeps the backfilled one
                        "summary": func.coalesce(stmt.excluded.summary, ContentItemRecord.summary),
                    },
                ).returning(ContentItemRecord.id)
                result = await session.execute(stmt)
                stored_ids.append(result.scalar_one())
            await session.commit()
        return stored_ids

    async def query_recent(self, topic: str, limit: int) -> List[ContentItem]:
        """Newest content items for a topic, most recently published first."""
        async with self.get_session() as session:
            result = await session.execute(
                select(ContentItemRecord)
                .where(ContentItemRecord.topic == topic)
                .order_by(
                    ContentItemRecord.published_date.desc().nulls_last(),
                    ContentItemRecord.created_at.desc(),
                )
                .limit(limit)
            )
            return [_to_content_item(row) for row in result.scalars().all()]

    # Collection jobs
    async def add_collection_jobs(self, jobs: Sequence[CollectionJob]) -> None:
        async with self.get_session() as session:
            for job in jobs:
                session.add(CollectionJobRecord(
                    id=job.id,
                    owner_id=job.owner_id,
                    topics=list(job.topics),
                    scheduled_time=to_db_time(job.scheduled_time),
                    next_delivery_date=to_db_time(job.next_delivery_date),
                    max_items_per_topic=job.max_items_per_topic,
                    status=job.status.value,
                ))
            await session.commit()

    async def get_due_collection_jobs(self, now: datetime) -> List[CollectionJob]:
        async with self.get_session() as session:
            result = await session.execute(
                select(CollectionJobRecord)
                .where(
                    CollectionJobRecord.status == CollectionStatus.PENDING.value,
                    CollectionJobRecord.scheduled_time <= to_db_time(now),
                )
                .order_by(CollectionJobRecord.scheduled_time)
            )
            return [_to_collection_job(row) for row in result.scalars().all()]

    async def list_collection_jobs(self, owner_id: str) -> List[CollectionJob]:
        async with self.get_session() as session:
            result = await session.execute(
                select(CollectionJobRecord)
                .where(CollectionJobRecord.owner_id == owner_id)
                .order_by(CollectionJobRecord.scheduled_time)
            )
            return [_to_collection_job(row) for row in result.scalars().all()]

    async def finish_collection_job(
        self,
        job_id: str,
        status: CollectionStatus,
        error_message: Optional[str] = None,
    ) -> None:
        async with self.get_session() as session:
            await session.execute(
                update(CollectionJobRecord)
                .where(CollectionJobRecord.id == job_id)
                .values(
                    status=status.value,
                    processed_at=_utcnow_naive(),
                    error_message=error_message,
                )
            )
            await session.commit()

