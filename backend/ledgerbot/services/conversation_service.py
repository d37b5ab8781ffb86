# /ledgerbot/services/conversation_service.py

import time
import logging
from typing import Any, Awaitable, Callable, Optional

from ledgerbot.config import strings
from ledgerbot.config.settings import Settings, settings
from ledgerbot.flows.base import FlowServices
from ledgerbot.flows.commands import CommandHandler, GlobalCommands, parse_command
from ledgerbot.flows.router import IntentRouter
from ledgerbot.flows.state import SessionManager
from ledgerbot.models.events import InboundEvent
from ledgerbot.services.ai_service import AIService
from ledgerbot.services.cache_service import ExtractionCaches
from ledgerbot.services.ledger_service import LedgerService
from ledgerbot.utils.logging import user_log_context
from ledgerbot.utils.metrics import message_counter, response_time_histogram
from ledgerbot.utils.queue import UserMessageQueue

# Entry point for the transport layer. Every event of a user is serialized
# through that user's queue; /reset is the only thing that reaches past it,
# by discarding whatever is still waiting before the reset itself is queued.

logger = logging.getLogger(__name__)


class ConversationService:
    def __init__(
        self,
        queue: UserMessageQueue,
        sessions: SessionManager,
        caches: ExtractionCaches,
        router: IntentRouter,
        commands: CommandHandler,
        services: Optional[FlowServices] = None,
        max_reply_length: int = settings.max_reply_length,
    ):
        self.queue = queue
        self.sessions = sessions
        self.caches = caches
        self.router = router
        self.commands = commands
        self.services = services
        self.max_reply_length = max_reply_length

    async def handle_event(self, event: InboundEvent) -> Optional[str]:
        """Returns the reply for event, or None when nothing should be sent."""
        user_key = event.user_key
        command = parse_command(event.text)

        if command == GlobalCommands.RESET:
            discarded = self.queue.clear_queue(user_key)
            if discarded:
                logger.info(f"Reset for {user_key} dropped {discarded} queued messages")

        if command:
            async def run_command():
                return self.commands.execute(command, user_key)
            return await self._run(user_key, run_command, kind="command")

        async def run_route():
            result = await self.router.route(event)
            return result.response
        kind = "attachment" if event.has_attachment else "text"
        return await self._run(user_key, run_route, kind=kind)

    async def _run(self, user_key: str, task: Callable[[], Awaitable[Any]], kind: str) -> Optional[str]:
        async def in_context():
            with user_log_context(user_key, kind):
                return await task()

        with response_time_histogram.labels(endpoint=kind).time():
            try:
                reply = await self.queue.enqueue(user_key, in_context)
            except Exception as e:
                message_counter.labels(status="error", kind=kind).inc()
                logger.error(f"Error handling {kind} event for {user_key}: {e}", exc_info=True)
                return strings.GENERIC_ERROR

        message_counter.labels(status="success", kind=kind).inc()
        return self._truncate(reply)

    def _truncate(self, reply: Optional[str]) -> Optional[str]:
        if reply is None or len(reply) <= self.max_reply_length:
            return reply
        return reply[: self.max_reply_length - 1] + "…"

    async def submit(self, user_key: str, task: Callable[[], Awaitable[Any]]) -> Any:
        """Runs a background step for user_key in order with that user's turns."""
        return await self.queue.enqueue(user_key, task)

    async def sweep_expired(self) -> int:
        """Scheduled as a coroutine so the stores are only ever touched from the loop thread."""
        swept = self.sessions.sweep_expired() + self.caches.sweep_expired()
        if swept:
            logger.info(f"Sweep removed {swept} expired sessions and cache entries")
        return swept

    async def shutdown(self):
        await self.queue.wait_idle()
        if self.services and self.services.ledger:
            await self.services.ledger.close()


def create_conversation_service(
    app_settings: Settings = settings,
    ledger: Optional[LedgerService] = None,
    ai: Optional[AIService] = None,
    clock: Callable[[], float] = time.monotonic,
) -> ConversationService:
    """Wires a service with its own, isolated queue, session and cache stores."""
    queue = UserMessageQueue()
    sessions = SessionManager(timeout_seconds=app_settings.flow_timeout_seconds, clock=clock)
    caches = ExtractionCaches(
        categorization_ttl=app_settings.categorization_cache_ttl,
        document_ttl=app_settings.document_cache_ttl,
        clock=clock,
    )
    if ledger is None:
        ledger = LedgerService(
            base_url=app_settings.ledger_api_url,
            token=app_settings.ledger_api_token,
            timeout=app_settings.ledger_timeout,
        )
    if ai is None:
        ai = AIService(
            gemini_api_key=app_settings.gemini_api_key,
            openai_api_key=app_settings.openai_api_key,
            gemini_model=app_settings.gemini_model,
            openai_model=app_settings.openai_model,
        )

    services = FlowServices(ledger=ledger, ai=ai, caches=caches)
    router = IntentRouter(sessions, services, classifier_timeout=app_settings.classifier_timeout)
    commands = CommandHandler(sessions, queue, caches)
    return ConversationService(
        queue=queue,
        sessions=sessions,
        caches=caches,
        router=router,
        commands=commands,
        services=services,
        max_reply_length=app_settings.max_reply_length,
    )
