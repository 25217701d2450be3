"""Delivery dispatch workflow using LangGraph."""

from langgraph.graph import END, START, StateGraph

from newsletter_scheduler.infrastructure.logging import get_logger
from newsletter_scheduler.models.schedule import DispatchOutcome
from newsletter_scheduler.models.state import DispatchState, has_critical_errors

logger = get_logger(__name__)


def create_dispatch_workflow() -> StateGraph:
    """Create the pending -> sent | failed dispatch workflow.

    Returns:
        Configured LangGraph StateGraph for dispatching one delivery
    """
    workflow = StateGraph(DispatchState)

    # Import workflow nodes (avoiding circular imports)
    from newsletter_scheduler.agents.recorder import record_failure, record_sent
    from newsletter_scheduler.agents.scheduler import spawn_next
    from newsletter_scheduler.agents.sender import send_newsletter
    from newsletter_scheduler.agents.validator import validate_delivery

    workflow.add_node("validate_delivery", validate_delivery)
    workflow.add_node("send_newsletter", send_newsletter)
    workflow.add_node("record_sent", record_sent)
    workflow.add_node("record_failure", record_failure)
    workflow.add_node("spawn_next", spawn_next)

    workflow.add_edge(START, "validate_delivery")

    # From validation - send, mark failed, or leave untouched
    workflow.add_conditional_edges(
        "validate_delivery",
        _route_after_validation,
        {
            "send": "send_newsletter",
            "fail": "record_failure",
            "complete": END,
        }
    )

    # From sending - record the result; a timeout or lost claim records nothing
    workflow.add_conditional_edges(
        "send_newsletter",
        _route_after_sending,
        {
            "sent": "record_sent",
            "fail": "record_failure",
            "complete": END,
        }
    )

    # Only a delivery this dispatch moved to sent spawns its successor
    workflow.add_conditional_edges(
        "record_sent",
        _route_after_recording,
        {
            "spawn": "spawn_next",
            "complete": END,
        }
    )

    workflow.add_edge("record_failure", END)
    workflow.add_edge("spawn_next", END)

    return workflow


# Routing functions for conditional edges
def _route_after_validation(state: DispatchState) -> str:
    """Route after delivery validation."""
    if state["outcome"] is not None:
        return "complete"
    if state["failure_detail"]:
        return "fail"
    return "send"


def _route_after_sending(state: DispatchState) -> str:
    """Route after the transport call."""
    # Timed out, or another dispatch holds the claim
    if state["outcome"] is not None:
        return "complete"
    send_result = state["send_result"]
    if send_result is not None and send_result.success:
        return "sent"
    return "fail"


def _route_after_recording(state: DispatchState) -> str:
    """Route after the sent status was recorded."""
    if state["outcome"] == DispatchOutcome.SENT and not has_critical_errors(state):
        return "spawn"
    return "complete"

