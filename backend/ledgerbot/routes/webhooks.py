# /ledgerbot/routes/webhooks.py

import structlog
from fastapi import APIRouter, Depends, Request

from ledgerbot.config.settings import settings
from ledgerbot.models.events import InboundEvent, ReplyEnvelope
from ledgerbot.services.conversation_service import ConversationService
from ledgerbot.utils.dependencies import get_conversation_service, verify_api_key
from ledgerbot.utils.metrics import response_time_histogram
from ledgerbot.utils.rate_limiter import limiter

# Inbound messages from the chat transport adapter. The adapter normalises
# its platform payload into an InboundEvent and sends back whatever reply
# this endpoint returns.

router = APIRouter(
    tags=["Webhooks"]
)

log = structlog.get_logger(__name__)


@router.post("/messages", response_model=ReplyEnvelope)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def handle_inbound_message(
    request: Request,
    event: InboundEvent,
    _: None = Depends(verify_api_key),
    conversation: ConversationService = Depends(get_conversation_service),
):
    """Processes one inbound event and returns the reply, if any."""
    with response_time_histogram.labels(endpoint="messages_webhook").time():
        log.info("Inbound message received", user_key=event.user_key, has_attachment=event.has_attachment)
        reply = await conversation.handle_event(event)
        return ReplyEnvelope(user_key=event.user_key, reply=reply)
