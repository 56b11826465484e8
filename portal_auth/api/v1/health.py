from fastapi import APIRouter, Depends

from portal_auth.api.flow_registry import FlowRegistry
from portal_auth.config import settings
from portal_auth.dependencies import get_registry

router = APIRouter()

@router.get("/health")
async def health_check(registry: FlowRegistry = Depends(get_registry)):
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "0.1.0",
        "active_flows": len(registry),
    }
