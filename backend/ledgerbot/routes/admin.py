# /ledgerbot/routes/admin.py

import logging
from fastapi import APIRouter, Depends, Request

from ledgerbot.config.settings import settings
from ledgerbot.models.api import APIResponse
from ledgerbot.services.conversation_service import ConversationService
from ledgerbot.utils.dependencies import get_conversation_service, verify_api_key
from ledgerbot.utils.rate_limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(verify_api_key)]
)


@router.get("/sessions", response_model=APIResponse)
@limiter.limit("30/minute")
async def list_sessions(request: Request, conversation: ConversationService = Depends(get_conversation_service)):
    """Active flow sessions with their delegation chains."""
    snapshots = conversation.sessions.active_sessions()
    return APIResponse(
        success=True,
        message=f"{len(snapshots)} active sessions",
        data={"sessions": [snapshot.model_dump(mode="json") for snapshot in snapshots]},
        version=settings.api_version
    )


@router.get("/queues", response_model=APIResponse)
@limiter.limit("30/minute")
async def queue_stats(request: Request, conversation: ConversationService = Depends(get_conversation_service)):
    """Per-user queue depth and processing state."""
    return APIResponse(
        success=True,
        message="Queue statistics retrieved successfully",
        data=conversation.queue.get_stats(),
        version=settings.api_version
    )
