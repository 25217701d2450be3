"""Materialization of newsletter sections into pending deliveries."""

from datetime import datetime
from typing import Optional

from newsletter_scheduler.infrastructure.database import Database
from newsletter_scheduler.infrastructure.error_handling import (
    ConfigurationError,
    handle_service_errors,
)
from newsletter_scheduler.infrastructure.logging import LoggerMixin
from newsletter_scheduler.models.schedule import (
    DeliveryStatus,
    MaterializeReport,
    NewsletterSection,
    ScheduledDelivery,
)
from newsletter_scheduler.services.collection import CollectionPlanner
from newsletter_scheduler.services.frequency import advance, ensure_utc, is_known_frequency


def validate_section(section: NewsletterSection) -> None:
    """Raise ConfigurationError when a section cannot be scheduled."""
    if not section.topic or not section.topic.strip():
        raise ConfigurationError(
            "Section has no topic", "SECTION_TOPIC_MISSING", {"section_id": section.id}
        )
    if section.anchor_send_time is None:
        raise ConfigurationError(
            "Section has no send time", "SECTION_ANCHOR_MISSING", {"section_id": section.id}
        )
    if not section.frequency or not section.frequency.strip():
        raise ConfigurationError(
            "Section has no frequency", "SECTION_FREQUENCY_MISSING", {"section_id": section.id}
        )


class ScheduleMaterializer(LoggerMixin):
    """Ensures every future section anchor has exactly one pending delivery."""

    def __init__(
        self,
        database: Database,
        planner: Optional[CollectionPlanner] = None,
        timezone: str = "UTC",
    ):
        self.database = database
        self.planner = planner
        self.timezone = timezone

    async def materialize_owner(self, owner_id: str, now: datetime) -> MaterializeReport:
        """Materialize the upcoming delivery of each of an owner's sections."""
        now = ensure_utc(now)
        report = MaterializeReport()

        for section in await self.database.get_sections(owner_id):
            try:
                validate_section(section)
            except ConfigurationError as e:
                self.logger.warning(
                    "Skipping misconfigured section",
                    owner_id=owner_id,
                    section_id=section.id,
                    reason=e.message,
                    error_code=e.error_code,
                )
                report.skipped_invalid += 1
                continue

            send_date = ensure_utc(section.anchor_send_time)
            if send_date <= now:
                report.skipped_past += 1
                continue

            if not is_known_frequency(section.frequency):
                self.logger.warning(
                    "Unrecognized frequency, advancing weekly",
                    owner_id=owner_id,
                    section_id=section.id,
                    frequency=section.frequency,
                )

            existing = await self.database.get_pending_delivery(owner_id, section.id, send_date)
            if existing is not None:
                report.existing += 1
                continue

            delivery = ScheduledDelivery(
                owner_id=owner_id,
                schedule_section_id=section.id,
                send_date=send_date,
                next_date=advance(send_date, section.frequency, self.timezone),
                section_refs=[section.id],
                status=DeliveryStatus.PENDING,
                frequency=section.frequency,
                timezone=self.timezone,
            )
            delivery_id, created = await self.database.insert_delivery(delivery)
            if not created:
                report.existing += 1
                continue

            report.created += 1
            report.created_ids.append(delivery_id)
            self.logger.info(
                "Delivery materialized",
                owner_id=owner_id,
                section_id=section.id,
                delivery_id=delivery_id,
                send_date=send_date.isoformat(),
            )

            if self.planner is not None:
                await self.planner.plan(owner_id, [section.topic], now, send_date)

        return report

    @handle_service_errors("ScheduleMaterializer")
    async def materialize_all(self, now: datetime) -> MaterializeReport:
        """Materialize every owner with configured sections."""
        report = MaterializeReport()
        owner_ids = await self.database.list_owner_ids()
        for owner_id in owner_ids:
            report.merge(await self.materialize_owner(owner_id, now))

        self.logger.info(
            "Materialization complete",
            owners=len(owner_ids),
            created=report.created,
            existing=report.existing,
            skipped_past=report.skipped_past,
            skipped_invalid=report.skipped_invalid,
        )
        return report
