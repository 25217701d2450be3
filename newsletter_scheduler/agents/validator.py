"""Delivery validation agent for the dispatch workflow."""

from newsletter_scheduler.infrastructure.logging import get_logger
from newsletter_scheduler.models.schedule import DispatchOutcome
from newsletter_scheduler.models.state import (
    DispatchState,
    ErrorSeverity,
    ProcessingStage,
    add_error,
)

logger = get_logger(__name__)

MISSING_CONTENT_DETAIL = "Rendered content missing at dispatch time"


async def validate_delivery(state: DispatchState) -> DispatchState:
    """Load the delivery and its recipient and check they can be sent.

    Args:
        state: Current workflow state

    Returns:
        Updated workflow state. ``outcome`` is set when the delivery must
        be left alone; ``failure_detail`` when it must be marked failed.
    """
    delivery_id = state["delivery_id"]
    database = state["dependencies"].database

    logger.info("Validating delivery", delivery_id=delivery_id)

    delivery = await database.get_delivery(delivery_id)
    if delivery is None:
        state["outcome"] = DispatchOutcome.NOT_FOUND
        add_error(
            state,
            ProcessingStage.VALIDATION,
            f"Delivery {delivery_id} not found",
            ErrorSeverity.HIGH,
            "DELIVERY_NOT_FOUND",
        )
        return state

    state["delivery"] = delivery

    if delivery.status.is_terminal:
        state["outcome"] = DispatchOutcome.NOT_PENDING
        state["warnings"].append(f"Delivery already {delivery.status.value}")
        return state

    if not delivery.is_due(state["now"]):
        state["outcome"] = DispatchOutcome.NOT_DUE
        return state

    if not delivery.has_content:
        state["failure_detail"] = MISSING_CONTENT_DETAIL
        add_error(
            state,
            ProcessingStage.VALIDATION,
            MISSING_CONTENT_DETAIL,
            ErrorSeverity.HIGH,
            "MISSING_CONTENT",
        )
        return state

    recipient = await database.get_user(delivery.owner_id)
    if recipient is None or not recipient.email:
        detail = f"No recipient email for owner {delivery.owner_id}"
        state["failure_detail"] = detail
        add_error(
            state,
            ProcessingStage.VALIDATION,
            detail,
            ErrorSeverity.HIGH,
            "MISSING_EMAIL",
        )
        return state

    state["recipient"] = recipient
    return state
