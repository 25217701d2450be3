"""Content pre-fetch planning ahead of scheduled deliveries."""

import asyncio
from datetime import datetime
from typing import List, Sequence

from newsletter_scheduler.infrastructure.database import Database
from newsletter_scheduler.infrastructure.error_handling import handle_service_errors
from newsletter_scheduler.infrastructure.logging import LoggerMixin
from newsletter_scheduler.models.content import CollectionJob, CollectionReport, CollectionStatus
from newsletter_scheduler.services.frequency import collection_points, ensure_utc
from newsletter_scheduler.services.interfaces import ContentCollector


class CollectionPlanner(LoggerMixin):
    """Plans and runs collection jobs so content is fresh when a delivery is due."""

    def __init__(
        self,
        database: Database,
        interval_hours: float = 24,
        max_items_per_topic: int = 5,
    ):
        self.database = database
        self.interval_hours = interval_hours
        self.max_items_per_topic = max_items_per_topic

    async def plan(
        self,
        owner_id: str,
        topics: Sequence[str],
        start: datetime,
        until: datetime,
    ) -> List[CollectionJob]:
        """Create collection jobs every ``interval_hours`` inside ``[start, until)``."""
        topics = [topic for topic in topics if topic.strip()]
        if not topics:
            return []

        jobs = [
            CollectionJob(
                owner_id=owner_id,
                topics=list(topics),
                scheduled_time=point,
                next_delivery_date=ensure_utc(until),
                max_items_per_topic=self.max_items_per_topic,
            )
            for point in collection_points(start, until, self.interval_hours)
        ]
        if jobs:
            await self.database.add_collection_jobs(jobs)
            self.logger.info(
                "Content collection planned",
                owner_id=owner_id,
                topics=topics,
                jobs=len(jobs),
                first=jobs[0].scheduled_time.isoformat(),
            )
        return jobs

    @handle_service_errors("CollectionPlanner")
    async def process_due(
        self,
        now: datetime,
        collector: ContentCollector,
        timeout: float = 120.0,
    ) -> CollectionReport:
        """Run every pending job scheduled at or before ``now``.

        A job is completed when every topic collected, failed otherwise; the
        remaining jobs still run.
        """
        report = CollectionReport()
        jobs = await self.database.get_due_collection_jobs(ensure_utc(now))
        self.logger.info("Processing collection jobs", count=len(jobs))

        for job in jobs:
            errors = []
            for topic in job.topics:
                try:
                    ids = await asyncio.wait_for(collector.collect(topic), timeout=timeout)
                    report.items_collected += len(ids)
                except asyncio.TimeoutError:
                    errors.append(f"{topic}: collection timed out after {timeout}s")
                except Exception as e:
                    errors.append(f"{topic}: {e}")

            if errors:
                report.failed += 1
                await self.database.finish_collection_job(
                    job.id, CollectionStatus.FAILED, "; ".join(errors)
                )
                self.logger.warning("Collection job failed", job_id=job.id, errors=errors)
            else:
                report.completed += 1
                await self.database.finish_collection_job(job.id, CollectionStatus.COMPLETED)

        return report
