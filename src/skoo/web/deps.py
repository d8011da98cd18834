"""Request dependencies: authenticated user, LLM client, Stripe status."""

from __future__ import annotations

from typing import Any, Callable

import structlog
from fastapi import Header, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from skoo.db import repository
from skoo.llm.client import LLMClient

logger = structlog.get_logger(__name__)

StripeStatusChecker = Callable[[str], dict[str, Any] | None]

UNAUTHORIZED = "Unauthorized"


async def get_current_user_id(authorization: str | None = Header(default=None)) -> str:
    """Resolve the ``Authorization: Bearer <token>`` header to a user id."""
    if not authorization or not authorization.lower().startswith("bearer "):
        logger.info("auth.missing_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=UNAUTHORIZED,
        )

    token = authorization[len("bearer "):].strip()
    user_id = await run_in_threadpool(repository.get_user_id_by_token, token) if token else None
    if user_id is None:
        logger.info("auth.invalid_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=UNAUTHORIZED,
        )
    return user_id


def get_llm_client() -> LLMClient:
    """LLM client built from the app config (overridden in tests)."""
    return LLMClient()


def no_stripe(user_id: str) -> dict[str, Any] | None:
    """Stripe status when no billing backend is wired: never subscribed."""
    return {"subscribed": False, "product_id": None}


def get_stripe_status_checker() -> StripeStatusChecker:
    return no_stripe
