"""Schedule materialization and content endpoints."""

from fastapi import APIRouter, Depends

from newsletter_scheduler.api.dependencies import EngineDep, collaborator_errors, require_api_key
from newsletter_scheduler.models.schedule import PopulateOutcome
from newsletter_scheduler.services.frequency import utcnow

router = APIRouter(prefix="/api", tags=["scheduler"], dependencies=[Depends(require_api_key)])


@router.post("/scheduler/run")
@collaborator_errors
async def run_scheduler(engine: EngineDep):
    """Materialize the upcoming delivery of every configured section."""
    report = await engine.materializer.materialize_all(utcnow())
    return {
        "success": True,
        "created": report.created,
        "existing": report.existing,
        "skippedPast": report.skipped_past,
        "skippedInvalid": report.skipped_invalid,
        "createdIds": report.created_ids,
    }


@router.post("/populate-content")
@collaborator_errors
async def populate_content(engine: EngineDep):
    """Render content onto pending deliveries that have none."""
    outcomes = await engine.populator.populate_pending()
    populated = [
        delivery_id for delivery_id, outcome in outcomes.items()
        if outcome == PopulateOutcome.POPULATED
    ]
    return {
        "message": "Email content populated",
        "processed": len(outcomes),
        "populated": populated,
        "outcomes": {delivery_id: outcome.value for delivery_id, outcome in outcomes.items()},
    }


@router.post("/content/process-collections")
@collaborator_errors
async def process_collections(engine: EngineDep):
    """Run planned content collections that are due."""
    if engine.collector is None:
        return {"success": True, "completed": 0, "failed": 0, "itemsCollected": 0}

    report = await engine.planner.process_due(
        utcnow(), engine.collector, timeout=engine.config.collector_timeout
    )
    return {
        "success": True,
        "completed": report.completed,
        "failed": report.failed,
        "itemsCollected": report.items_collected,
    }
