"""
app/api/routers package marker.
"""

from app.api.routers.savings_jobs import router as savings_jobs_router

__all__ = [
    "savings_jobs_router",
]
