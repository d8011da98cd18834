"""Coach message endpoint. Always answers 200."""

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from skoo.core.coach import CoachContext, generate_coach_message
from skoo.llm.client import LLMClient
from skoo.web.deps import get_current_user_id, get_llm_client
from skoo.web.schemas import CoachRequest, CoachResponse

router = APIRouter(tags=["coach"])


@router.post("/skoo-coach", response_model=CoachResponse)
async def coach(
    request: CoachRequest,
    user_id: str = Depends(get_current_user_id),
    client: LLMClient = Depends(get_llm_client),
) -> CoachResponse:
    ctx = request.context
    context = CoachContext(
        first_name=ctx.firstName,
        total_hours_this_week=ctx.totalHoursThisWeek,
        completed_hours_this_week=ctx.completedHoursThisWeek,
        next_exam_subject=ctx.nextExamSubject,
        next_exam_days=ctx.nextExamDays,
        today_sessions_count=ctx.todaySessionsCount,
        streak_days=ctx.streakDays,
    )
    message = await run_in_threadpool(
        generate_coach_message, context, request.messageType, client
    )
    return CoachResponse(message=message)
