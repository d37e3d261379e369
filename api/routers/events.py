"""Source-control event endpoints for the Docsmith API.

Push notifications are acknowledged as soon as they are validated; the
ingestion run itself happens in the background and its result is only
visible in the logs and the supervisor history.
"""

import structlog
from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from api.dependencies import SupervisorDep
from core.ingestion.models import PushEvent

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])


class PushAcceptedResponse(BaseModel):
    """Response model for an accepted push notification.

    Attributes:
        accepted: Always true; the run result is not reported here.
        run_id: Identifier of the scheduled ingestion run.
    """

    accepted: bool = Field(default=True, description="Notification accepted")
    run_id: str = Field(..., description="Scheduled run identifier")


@router.post(
    "/push",
    response_model=PushAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Notify a push",
    description="Schedules ingestion of the pushed repository and returns immediately.",
)
async def push_event(
    event: PushEvent,
    supervisor: SupervisorDep,
) -> PushAcceptedResponse:
    """Accept a push notification for a watched repository.

    Args:
        event: The push notification.
        supervisor: Supervisor running ingestion in the background.

    Returns:
        PushAcceptedResponse with the scheduled run identifier.
    """
    run_id = supervisor.submit(event)

    logger.info(
        "Push accepted",
        run_id=run_id,
        slug=event.slug,
        destination_type=event.destination.type,
        destination_name=event.destination.name,
    )

    return PushAcceptedResponse(run_id=run_id)
