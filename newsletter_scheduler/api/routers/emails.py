"""Email dispatch endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from newsletter_scheduler.api.dependencies import EngineDep, collaborator_errors, require_api_key
from newsletter_scheduler.models.schedule import DispatchOutcome, DispatchResultModel
from newsletter_scheduler.services.frequency import utcnow

router = APIRouter(prefix="/api/emails", tags=["emails"], dependencies=[Depends(require_api_key)])


class SendEmailRequest(BaseModel):
    deliveryId: Optional[str] = None


@router.post("/send")
@collaborator_errors
async def send_email(body: SendEmailRequest, engine: EngineDep):
    """Dispatch one delivery now."""
    if not body.deliveryId:
        raise HTTPException(status_code=400, detail="deliveryId is required")

    result = await engine.dispatcher.dispatch(body.deliveryId, utcnow())

    if result.outcome in (
        DispatchOutcome.NOT_FOUND,
        DispatchOutcome.NOT_PENDING,
        DispatchOutcome.CONFLICT,
    ):
        raise HTTPException(status_code=404, detail="Delivery not found or already sent")

    if result.outcome == DispatchOutcome.FAILED:
        return JSONResponse(status_code=500, content={"error": result.error_detail})

    if result.outcome == DispatchOutcome.TIMED_OUT:
        return JSONResponse(
            status_code=500,
            content={"error": "Mail transport timed out; delivery left pending"},
        )

    return {
        "success": result.succeeded,
        "outcome": result.outcome.value,
        "messageId": result.message_id,
        "nextDeliveryId": result.next_delivery_id,
    }


@router.post("/process-queue")
@collaborator_errors
async def process_queue(engine: EngineDep):
    """Dispatch every delivery that is due."""
    results = await engine.dispatcher.dispatch_due(utcnow())
    return {
        "success": True,
        "processed": len(results),
        "results": [DispatchResultModel.from_result(r).model_dump() for r in results],
    }
