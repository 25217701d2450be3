"""State models for the LangGraph dispatch workflow."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, TypedDict

from newsletter_scheduler.models.email import SendResult
from newsletter_scheduler.models.schedule import (
    DispatchOutcome,
    DispatchResult,
    ScheduledDelivery,
)
from newsletter_scheduler.models.user import UserProfile


class ProcessingStage(str, Enum):
    """Processing stages for the dispatch workflow."""

    VALIDATION = "validation"
    DELIVERY = "delivery"
    SCHEDULING = "scheduling"


class ErrorSeverity(str, Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ProcessingError:
    """Represents an error that occurred during processing."""

    stage: ProcessingStage
    message: str
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    error_code: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"[{self.stage.value}] {self.message}"


class DispatchState(TypedDict):
    """State flowing through the dispatch workflow nodes.

    ``dependencies`` holds the collaborators (database, notification
    service, configuration) the nodes act through.
    """

    # Input
    delivery_id: str
    now: datetime
    dependencies: Any

    # Loaded records
    delivery: Optional[ScheduledDelivery]
    recipient: Optional[UserProfile]

    # Results
    send_result: Optional[SendResult]
    outcome: Optional[DispatchOutcome]
    failure_detail: Optional[str]
    next_delivery_id: Optional[str]

    # Error handling and monitoring
    errors: List[ProcessingError]
    warnings: List[str]


def create_initial_state(
    delivery_id: str,
    now: datetime,
    dependencies: Any,
) -> DispatchState:
    """Create initial state for the dispatch workflow."""
    return DispatchState(
        delivery_id=delivery_id,
        now=now,
        dependencies=dependencies,
        delivery=None,
        recipient=None,
        send_result=None,
        outcome=None,
        failure_detail=None,
        next_delivery_id=None,
        errors=[],
        warnings=[],
    )


def add_error(
    state: DispatchState,
    stage: ProcessingStage,
    message: str,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Add an error to the workflow state."""
    error = ProcessingError(
        stage=stage,
        message=message,
        severity=severity,
        error_code=error_code,
        details=details or {},
    )
    state["errors"].append(error)


def has_critical_errors(state: DispatchState) -> bool:
    """Check if state has any critical errors."""
    return any(
        error.severity == ErrorSeverity.CRITICAL
        for error in state["errors"]
    )


def to_dispatch_result(state: DispatchState) -> DispatchResult:
    """Collapse a finished workflow state into a DispatchResult."""
    send_result = state["send_result"]
    return DispatchResult(
        delivery_id=state["delivery_id"],
        outcome=state["outcome"] or DispatchOutcome.NOT_FOUND,
        next_delivery_id=state["next_delivery_id"],
        message_id=send_result.message_id if send_result else None,
        error_detail=state["failure_detail"],
    )
