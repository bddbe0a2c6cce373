"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.summaries import router as summaries_router
from routes.approvals import router as approvals_router
from routes.sync import router as sync_router
from routes.production_groups import router as production_groups_router

__all__ = [
    "summaries_router",
    "approvals_router",
    "sync_router",
    "production_groups_router",
]
