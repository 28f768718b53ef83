"""API routes for Compliance Alerts."""

from fastapi import APIRouter

from .alerts import portal_router as portal_router
from .alerts import router as alerts_router
from .notifications import router as notifications_router
from .remediation import router as remediation_router

# Main API router
api_router = APIRouter()

# Back-office: authoring, publication, dispatch
api_router.include_router(alerts_router)
api_router.include_router(remediation_router)

# Client portal and per-user routes
api_router.include_router(portal_router)
api_router.include_router(notifications_router)

__all__ = ["api_router"]
