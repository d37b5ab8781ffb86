# /ledgerbot/utils/dependencies.py

import secrets
import structlog
from fastapi import Request, HTTPException

from ledgerbot.config.settings import settings
from ledgerbot.services.conversation_service import ConversationService
from ledgerbot.utils.request_utils import get_remote_address

log = structlog.get_logger(__name__)


async def verify_api_key(request: Request):
    """Requires a matching X-API-KEY header when an API key is configured."""
    if settings.api_key:
        provided_key = request.headers.get("X-API-KEY")
        if not (provided_key and secrets.compare_digest(provided_key, settings.api_key)):
            log.warning("Rejected request with invalid API key", client_ip=get_remote_address(request), path=request.url.path)
            raise HTTPException(status_code=403, detail="Invalid or missing API key")


def get_conversation_service(request: Request) -> ConversationService:
    service = getattr(request.app.state, "conversation_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Conversation service is not ready")
    return service
