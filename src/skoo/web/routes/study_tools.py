"""Study aid generation endpoint."""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from skoo.core.study_tools import STUDY_AID_FUNCTIONS, StudyToolError, generate_study_aid
from skoo.llm.client import LLMClient
from skoo.web.deps import get_current_user_id, get_llm_client
from skoo.web.schemas import (
    GATEWAY_ERROR_RESPONSES,
    ErrorResponse,
    StudyToolRequest,
    StudyToolResponse,
)

router = APIRouter(tags=["study-tools"])


@router.post(
    "/ai-study-tools",
    response_model=StudyToolResponse,
    responses={400: {"model": ErrorResponse}, **GATEWAY_ERROR_RESPONSES},
)
async def study_tools(
    request: StudyToolRequest,
    user_id: str = Depends(get_current_user_id),
    client: LLMClient = Depends(get_llm_client),
) -> StudyToolResponse:
    """Generate a quiz, fiche or flashcard set."""
    if request.type not in STUDY_AID_FUNCTIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown type: {request.type}",
        )

    try:
        result = await run_in_threadpool(
            generate_study_aid,
            request.type,
            request.subject,
            client,
            request.content,
        )
    except StudyToolError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        ) from e

    return StudyToolResponse(result=result)
