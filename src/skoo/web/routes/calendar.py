"""ICS calendar import endpoint."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from skoo.core.calendar_import import CalendarImportError, import_events, parse_ics
from skoo.web.deps import get_current_user_id
from skoo.web.schemas import CalendarEventResponse, CalendarImportResponse, ErrorResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/calendar", tags=["calendar"])


@router.post(
    "/import",
    response_model=CalendarImportResponse,
    responses={400: {"model": ErrorResponse}},
)
async def import_calendar(
    request: Request,
    calendar_name: str | None = None,
    user_id: str = Depends(get_current_user_id),
) -> CalendarImportResponse:
    """Import the raw ICS document sent as request body."""
    body = await request.body()
    if not body.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Empty ICS body",
        )

    try:
        events = await run_in_threadpool(parse_ics, body)
    except CalendarImportError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    imported = await run_in_threadpool(import_events, user_id, events, calendar_name)
    logger.info("calendar_imported", user_id=user_id, imported=imported)

    return CalendarImportResponse(
        imported=imported,
        events=[CalendarEventResponse(**e.to_record()) for e in events],
    )
