"""Copilot endpoint.

Gateway failures (LLMError and subclasses) propagate to the app-level
exception handlers, which map them to 429 / 402 / 500.
"""

import structlog
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from skoo.core.copilot import run_copilot
from skoo.llm.client import LLMClient
from skoo.web.deps import get_current_user_id, get_llm_client
from skoo.web.schemas import GATEWAY_ERROR_RESPONSES, CopilotRequest, CopilotResponse

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["copilot"])


@router.post(
    "/skoo-copilot",
    response_model=CopilotResponse,
    responses=GATEWAY_ERROR_RESPONSES,
)
async def copilot(
    request: CopilotRequest,
    user_id: str = Depends(get_current_user_id),
    client: LLMClient = Depends(get_llm_client),
) -> CopilotResponse:
    """Run one copilot turn for the authenticated student."""
    result = await run_in_threadpool(
        run_copilot,
        [m.model_dump() for m in request.messages],
        request.user_context,
        user_id,
        client,
    )

    logger.info(
        "copilot_request_done",
        user_id=user_id,
        rounds=result.rounds,
        tool_calls=len(result.tool_calls),
    )
    return CopilotResponse(**result.to_dict())
