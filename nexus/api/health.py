from fastapi import APIRouter, Depends
from typing import Dict, Any

from .deps import get_session_manager
from ..core.session import SessionManager

router = APIRouter()


@router.get("/healthz")
async def health_check(manager: SessionManager = Depends(get_session_manager)) -> Dict[str, Any]:
    """Health check endpoint that verifies provider status"""

    provider_status = {
        provider.name: await provider.health_check()
        for provider in manager.providers
    }

    all_healthy = all(
        status["status"] == "healthy"
        for status in provider_status.values()
    )

    return {
        "status": "healthy" if all_healthy else "degraded",
        "providers": provider_status,
        "sessions": len(manager.addresses),
    }
