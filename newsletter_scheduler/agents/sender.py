"""Email sending agent for the dispatch workflow."""

import asyncio

from newsletter_scheduler.infrastructure.logging import get_logger
from newsletter_scheduler.models.schedule import DispatchOutcome
from newsletter_scheduler.models.state import (
    DispatchState,
    ErrorSeverity,
    ProcessingStage,
    add_error,
)

logger = get_logger(__name__)


async def send_newsletter(state: DispatchState) -> DispatchState:
    """Claim the delivery and hand its rendered content to the mail transport.

    Only the dispatch holding the claim calls the transport; overlapping
    triggers end with CONFLICT and send nothing. A timeout releases the
    claim and leaves the delivery pending: the provider may or may not have
    accepted it, so it stays pending for a later attempt.

    Args:
        state: Current workflow state

    Returns:
        Updated workflow state with the send result
    """
    dependencies = state["dependencies"]
    database = dependencies.database
    delivery = state["delivery"]
    timeout = dependencies.transport_timeout

    if not await database.claim_delivery(delivery.id, dependencies.lease_seconds):
        state["outcome"] = DispatchOutcome.CONFLICT
        state["warnings"].append("Delivery is being dispatched by another trigger")
        logger.info("Delivery already claimed, skipping send", delivery_id=delivery.id)
        return state

    try:
        send_result = await asyncio.wait_for(
            dependencies.notification.send_delivery(delivery, state["recipient"]),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        await database.release_claim(delivery.id)
        state["outcome"] = DispatchOutcome.TIMED_OUT
        add_error(
            state,
            ProcessingStage.DELIVERY,
            f"Mail transport timed out after {timeout}s",
            ErrorSeverity.HIGH,
            "TRANSPORT_TIMEOUT",
        )
        logger.warning(
            "Mail transport timed out, delivery left pending",
            delivery_id=delivery.id,
            timeout=timeout,
        )
        return state

    state["send_result"] = send_result
    if not send_result.success:
        state["failure_detail"] = send_result.reason or "Mail transport rejected the email"
        add_error(
            state,
            ProcessingStage.DELIVERY,
            f"Email delivery failed: {state['failure_detail']}",
            ErrorSeverity.HIGH,
            "DELIVERY_FAILED",
        )

    return state
