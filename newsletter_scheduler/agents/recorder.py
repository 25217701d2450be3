"""Status recording agents for the dispatch workflow."""

from newsletter_scheduler.infrastructure.logging import get_logger
from newsletter_scheduler.models.schedule import DeliveryStatus, DispatchOutcome
from newsletter_scheduler.models.state import DispatchState

logger = get_logger(__name__)


async def record_sent(state: DispatchState) -> DispatchState:
    """Move the delivery from pending to sent.

    Losing the compare-and-set means another trigger already finished this
    delivery; the outcome becomes CONFLICT and nothing is spawned.
    """
    database = state["dependencies"].database
    delivery = state["delivery"]
    send_result = state["send_result"]

    updated = await database.update_delivery_status(
        delivery.id,
        DeliveryStatus.SENT,
        provider_message_id=send_result.message_id,
    )
    if not updated:
        state["outcome"] = DispatchOutcome.CONFLICT
        state["warnings"].append("Delivery was transitioned by another dispatch")
        logger.warning(
            "Delivery sent but status already changed",
            delivery_id=delivery.id,
            message_id=send_result.message_id,
        )
        return state

    state["outcome"] = DispatchOutcome.SENT
    logger.info(
        "Delivery sent",
        delivery_id=delivery.id,
        owner_id=delivery.owner_id,
        message_id=send_result.message_id,
    )
    return state


async def record_failure(state: DispatchState) -> DispatchState:
    """Move the delivery from pending to failed with the failure detail."""
    database = state["dependencies"].database
    delivery = state["delivery"]
    detail = state["failure_detail"] or "Delivery could not be sent"

    updated = await database.update_delivery_status(
        delivery.id, DeliveryStatus.FAILED, detail=detail
    )
    if not updated:
        state["outcome"] = DispatchOutcome.CONFLICT
        state["warnings"].append("Delivery was transitioned by another dispatch")
        return state

    state["outcome"] = DispatchOutcome.FAILED
    logger.error("Delivery failed", delivery_id=delivery.id, error_detail=detail)
    return state
