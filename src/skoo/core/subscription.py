"""Trial window and subscription tier resolution.

Tier precedence: lifetime tier, then active school membership (major),
then an active Stripe subscription, then the 7-day trial.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

import structlog

logger = structlog.get_logger(__name__)

Tier = Literal["free", "student", "major"]

TRIAL_DURATION_DAYS = 7


@dataclass
class TrialInfo:
    """Trial window of a user."""

    is_trialing: bool = False
    trial_expired: bool = False
    selected_tier: str | None = None
    trial_started_at: str | None = None
    trial_ends_at: str | None = None
    days_remaining: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SubscriptionState:
    """Effective access of a user."""

    is_subscribed: bool = False
    tier: str | None = None
    source: Literal["lifetime", "school", "stripe", "trial", "none"] = "none"
    trial: TrialInfo = field(default_factory=TrialInfo)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_subscribed": self.is_subscribed,
            "tier": self.tier,
            "source": self.source,
            "trial": self.trial.to_dict(),
        }


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def compute_trial_info(
    selected_tier: str | None,
    trial_started_at: str | None,
    now: datetime | None = None,
    duration_days: int = TRIAL_DURATION_DAYS,
) -> TrialInfo:
    """Compute the trial window from its start timestamp.

    Without a start the user never trialed: not trialing, not expired.
    With a start and no chosen tier the trial is on the student tier.
    """
    if not trial_started_at:
        return TrialInfo(selected_tier=selected_tier or None)

    now = now or datetime.now(timezone.utc)
    start = parse_timestamp(trial_started_at)
    end = start + timedelta(days=duration_days)

    expired = now > end
    remaining = max(0, math.ceil((end - now).total_seconds() / 86400))

    return TrialInfo(
        is_trialing=not expired,
        trial_expired=expired,
        selected_tier=selected_tier or "student",
        trial_started_at=trial_started_at,
        trial_ends_at=end.isoformat(),
        days_remaining=0 if expired else remaining,
    )


def tier_for_product(product_id: str | None, stripe_products: dict[str, str]) -> str:
    """Map a Stripe product id to a tier (student when unknown)."""
    if product_id and product_id in stripe_products:
        return stripe_products[product_id]
    return "student"


def resolve_subscription(
    profile: dict[str, Any] | None,
    has_school_membership: bool,
    stripe_status: dict[str, Any] | None,
    now: datetime | None = None,
    duration_days: int = TRIAL_DURATION_DAYS,
    stripe_products: dict[str, str] | None = None,
) -> SubscriptionState:
    """Resolve the effective tier of a user.

    Args:
        profile: Profile row (lifetime_tier, selected_tier, trial_started_at)
        has_school_membership: Whether the user is an active school member
        stripe_status: ``{"subscribed": bool, "product_id": str | None}``,
            or None when the Stripe check failed
        now: Reference time
        duration_days: Trial length
        stripe_products: Product id -> tier mapping
    """
    profile = profile or {}

    if profile.get("lifetime_tier"):
        return SubscriptionState(is_subscribed=True, tier=profile["lifetime_tier"], source="lifetime")

    if has_school_membership:
        return SubscriptionState(is_subscribed=True, tier="major", source="school")

    if stripe_status is not None and stripe_status.get("subscribed"):
        tier = tier_for_product(stripe_status.get("product_id"), stripe_products or {})
        return SubscriptionState(is_subscribed=True, tier=tier, source="stripe")

    if stripe_status is None:
        logger.warning("subscription.stripe_check_failed", user_id=profile.get("id"))

    trial = compute_trial_info(
        profile.get("selected_tier"),
        profile.get("trial_started_at"),
        now=now,
        duration_days=duration_days,
    )
    if trial.is_trialing:
        return SubscriptionState(
            is_subscribed=True,
            tier=trial.selected_tier or "student",
            source="trial",
            trial=trial,
        )

    return SubscriptionState(is_subscribed=False, tier=None, source="none", trial=trial)
