"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from reseller_backend.app.api.v1.endpoints import cron, settlements

router = APIRouter()

# Scheduler / operator trigger
router.include_router(cron.router)

# Dashboard settlement endpoints
router.include_router(settlements.router)
