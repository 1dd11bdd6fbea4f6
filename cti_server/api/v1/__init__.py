"""
API v1 Router

Org-scoped data routes read the organization from the caller, never from the path.
"""

from fastapi import APIRouter
from . import incidents, organizations, threat_actors, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(incidents.router, prefix="/incidents", tags=["Incidents"])
router.include_router(threat_actors.router, prefix="/threat-actors", tags=["Threat Actors"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/users",
            "/organizations",
            "/incidents",
            "/threat-actors",
        ],
    }
