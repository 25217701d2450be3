"""Next-delivery scheduling agent for the dispatch workflow."""

from typing import Optional

from newsletter_scheduler.infrastructure.logging import get_logger
from newsletter_scheduler.models.schedule import (
    DeliveryStatus,
    DispatchOutcome,
    NewsletterSection,
    ScheduledDelivery,
)
from newsletter_scheduler.models.state import (
    DispatchState,
    ErrorSeverity,
    ProcessingStage,
    add_error,
)
from newsletter_scheduler.services.frequency import advance

logger = get_logger(__name__)


def build_next_delivery(
    sent: ScheduledDelivery,
    section: Optional[NewsletterSection] = None,
) -> ScheduledDelivery:
    """The pending delivery that follows ``sent`` in its schedule.

    The current section frequency wins so that edits take effect from the
    next cycle; the frequency recorded on the delivery is used when the
    section is gone or has none.
    """
    frequency = sent.frequency
    if section is not None and section.frequency and section.frequency.strip():
        frequency = section.frequency

    return ScheduledDelivery(
        owner_id=sent.owner_id,
        schedule_section_id=sent.schedule_section_id,
        send_date=sent.next_date,
        next_date=advance(sent.next_date, frequency, sent.timezone),
        section_refs=list(sent.section_refs),
        status=DeliveryStatus.PENDING,
        frequency=frequency,
        timezone=sent.timezone,
    )


async def spawn_next(state: DispatchState) -> DispatchState:
    """Create the next pending delivery and move the section anchors forward.

    Args:
        state: Workflow state of a delivery just recorded as sent

    Returns:
        Updated workflow state. A persistence failure sets the outcome to
        CONTINUITY_BROKEN with a critical error.
    """
    database = state["dependencies"].database
    delivery = state["delivery"]

    try:
        section = await database.get_section(delivery.owner_id, delivery.schedule_section_id)
        next_delivery = build_next_delivery(delivery, section)
        next_id, created = await database.spawn_next_delivery(next_delivery)
    except Exception as e:
        detail = f"Failed to schedule the delivery after {delivery.id}: {e}"
        state["outcome"] = DispatchOutcome.CONTINUITY_BROKEN
        state["failure_detail"] = detail
        add_error(
            state,
            ProcessingStage.SCHEDULING,
            detail,
            ErrorSeverity.CRITICAL,
            "SPAWN_NEXT_FAILED",
            {"exception_type": type(e).__name__},
        )
        logger.critical(
            "Schedule continuity broken",
            delivery_id=delivery.id,
            owner_id=delivery.owner_id,
            section_id=delivery.schedule_section_id,
            error=str(e),
            exc_info=True,
        )
        return state

    state["next_delivery_id"] = next_id
    logger.info(
        "Next delivery scheduled",
        delivery_id=delivery.id,
        next_delivery_id=next_id,
        send_date=next_delivery.send_date.isoformat(),
        created=created,
    )
    return state
