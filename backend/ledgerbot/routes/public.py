# /ledgerbot/routes/public.py

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest
from datetime import datetime, timezone

from ledgerbot.config.settings import settings
from ledgerbot.utils.dependencies import verify_api_key

# Public endpoints that need no authentication (root, health checks). The
# /metrics endpoint is protected by the API key when one is configured.

router = APIRouter()

@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Ledgerbot Budget Assistant",
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment
    }

@router.get("/health", summary="Basic Health Check")
async def health_check(request: Request):
    """Basic health check for load balancers."""
    service = getattr(request.app.state, "conversation_service", None)
    return {
        "status": "healthy" if service is not None else "starting",
        "timestamp": datetime.now(timezone.utc),
        "active_sessions": len(service.sessions) if service is not None else 0,
    }

@router.get("/health/live", summary="Liveness Check")
async def liveness_check():
    """Kubernetes/Docker liveness check."""
    return {"status": "alive"}

@router.get("/metrics", tags=["Monitoring"])
async def metrics(_: None = Depends(verify_api_key)):
    """Secured Prometheus metrics endpoint."""
    return PlainTextResponse(generate_latest(), media_type="text/plain")
