"""Route handlers for Web API."""

from skoo.web.routes.health import router as health_router
from skoo.web.routes.copilot import router as copilot_router
from skoo.web.routes.study_tools import router as study_tools_router
from skoo.web.routes.coach import router as coach_router
from skoo.web.routes.subscription import router as subscription_router
from skoo.web.routes.calendar import router as calendar_router

__all__ = [
    "health_router",
    "copilot_router",
    "study_tools_router",
    "coach_router",
    "subscription_router",
    "calendar_router",
]
