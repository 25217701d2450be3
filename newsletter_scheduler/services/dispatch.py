"""Dispatch of due deliveries through the LangGraph dispatch workflow."""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from newsletter_scheduler.infrastructure.database import Database
from newsletter_scheduler.infrastructure.error_handling import (
    DeliveryNotFoundError,
    ScheduleContinuityError,
    SchedulerError,
    handle_service_errors,
)
from newsletter_scheduler.infrastructure.logging import LoggerMixin
from newsletter_scheduler.models.schedule import (
    DeliveryStatus,
    DispatchOutcome,
    DispatchResult,
)
from newsletter_scheduler.models.state import create_initial_state, to_dispatch_result
from newsletter_scheduler.services.frequency import ensure_utc, utcnow
from newsletter_scheduler.services.notification import NotificationService
from newsletter_scheduler.workflows.dispatch import create_dispatch_workflow


@dataclass
class DispatchDependencies:
    """Collaborators the dispatch workflow nodes act through."""

    database: Database
    notification: NotificationService
    transport_timeout: float = 30.0
    lease_seconds: float = 600.0


class Dispatcher(LoggerMixin):
    """Sends due deliveries and keeps each recurring schedule going."""

    def __init__(
        self,
        database: Database,
        notification: NotificationService,
        transport_timeout: float = 30.0,
        lease_seconds: float = 600.0,
    ):
        self.database = database
        self.dependencies = DispatchDependencies(
            database=database,
            notification=notification,
            transport_timeout=transport_timeout,
            lease_seconds=lease_seconds,
        )
        self.app = create_dispatch_workflow().compile()

    async def _run(self, delivery_id: str, now: datetime) -> DispatchResult:
        initial_state = create_initial_state(delivery_id, ensure_utc(now), self.dependencies)
        final_state = await self.app.ainvoke(initial_state)
        result = to_dispatch_result(final_state)

        self.logger.info(
            "Dispatch finished",
            delivery_id=delivery_id,
            outcome=result.outcome.value,
            next_delivery_id=result.next_delivery_id,
            errors=[str(error) for error in final_state["errors"]],
        )
        return result

    async def dispatch(self, delivery_id: str, now: Optional[datetime] = None) -> DispatchResult:
        """Dispatch one delivery.

        Args:
            delivery_id: Delivery to send
            now: Reference time for the due check, defaults to the current time

        Returns:
            DispatchResult describing the outcome

        Raises:
            ScheduleContinuityError: The delivery was sent but its successor
                could not be stored; ``respawn_next`` repairs it.
        """
        result = await self._run(delivery_id, now or utcnow())
        if result.outcome == DispatchOutcome.CONTINUITY_BROKEN:
            raise ScheduleContinuityError(
                result.error_detail or f"Next delivery after {delivery_id} was not created",
                "SPAWN_NEXT_FAILED",
                {"delivery_id": delivery_id},
            )
        return result

    @handle_service_errors("Dispatcher")
    async def dispatch_due(self, now: Optional[datetime] = None) -> List[DispatchResult]:
        """Dispatch every pending delivery whose send date has passed.

        Each delivery is dispatched independently; a broken schedule shows
        up as a CONTINUITY_BROKEN result rather than stopping the batch.
        """
        now = now or utcnow()
        due = await self.database.list_due_deliveries(now)
        results = [await self._run(delivery.id, now) for delivery in due]

        self.logger.info(
            "Queue processed",
            due=len(due),
            sent=sum(1 for r in results if r.outcome == DispatchOutcome.SENT),
            failed=sum(1 for r in results if r.outcome == DispatchOutcome.FAILED),
            continuity_broken=sum(
                1 for r in results if r.outcome == DispatchOutcome.CONTINUITY_BROKEN
            ),
        )
        return results

    async def respawn_next(self, delivery_id: str) -> Tuple[str, bool]:
        """Create the successor of a sent delivery if it is missing.

        Safe to call repeatedly: an existing successor is returned as is.

        Returns:
            The successor's id and whether this call created it
        """
        delivery = await self.database.get_delivery(delivery_id)
        if delivery is None:
            raise DeliveryNotFoundError(
                f"Delivery {delivery_id} not found",
                "DELIVERY_NOT_FOUND",
                {"delivery_id": delivery_id},
            )
        if delivery.status != DeliveryStatus.SENT:
            raise SchedulerError(
                f"Delivery {delivery_id} is {delivery.status.value}, only sent deliveries have a successor",
                "DELIVERY_NOT_SENT",
                {"delivery_id": delivery_id, "status": delivery.status.value},
            )

        # Imported here to avoid a circular import with the workflow agents
        from newsletter_scheduler.agents.scheduler import build_next_delivery

        section = await self.database.get_section(delivery.owner_id, delivery.schedule_section_id)
        next_delivery = build_next_delivery(delivery, section)
        try:
            next_id, created = await self.database.spawn_next_delivery(next_delivery)
        except Exception as e:
            self.logger.critical(
                "Schedule continuity repair failed",
                delivery_id=delivery_id,
                error=str(e),
                exc_info=True,
            )
            raise ScheduleContinuityError(
                f"Failed to schedule the delivery after {delivery_id}: {e}",
                "SPAWN_NEXT_FAILED",
                {"delivery_id": delivery_id},
            ) from e

        self.logger.info(
            "Successor ensured",
            delivery_id=delivery_id,
            next_delivery_id=next_id,
            created=created,
        )
        return next_id, created
