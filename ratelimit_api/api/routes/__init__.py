from __future__ import annotations

from ratelimit_api.api.routes.health import router as health_router
from ratelimit_api.api.routes.quota import router as quota_router

__all__ = ["health_router", "quota_router"]
