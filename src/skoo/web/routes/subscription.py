"""Subscription state endpoint."""

import structlog
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from skoo.config.app_config import load_app_config
from skoo.core.subscription import resolve_subscription
from skoo.db import repository
from skoo.web.deps import StripeStatusChecker, get_current_user_id, get_stripe_status_checker
from skoo.web.schemas import SubscriptionResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/subscription", tags=["subscription"])


@router.get("", response_model=SubscriptionResponse)
async def get_subscription(
    user_id: str = Depends(get_current_user_id),
    check_stripe: StripeStatusChecker = Depends(get_stripe_status_checker),
) -> SubscriptionResponse:
    """Resolve tier and trial window of the authenticated user."""
    profile = await run_in_threadpool(repository.get_profile, user_id)
    is_member = await run_in_threadpool(repository.has_active_school_membership, user_id)
    stripe_status = await run_in_threadpool(check_stripe, user_id)

    trial_config = load_app_config().trial
    state = resolve_subscription(
        profile,
        is_member,
        stripe_status,
        duration_days=trial_config.duration_days,
        stripe_products=trial_config.stripe_products,
    )

    logger.info("subscription_resolved", user_id=user_id, tier=state.tier, source=state.source)
    return SubscriptionResponse(**state.to_dict())
