# /ledgerbot/flows/commands.py

import logging
from typing import Optional

from ledgerbot.config import strings
from ledgerbot.flows.state import SessionManager
from ledgerbot.services.cache_service import ExtractionCaches
from ledgerbot.utils.queue import UserMessageQueue

logger = logging.getLogger(__name__)


class GlobalCommands:
    """Commands that work from anywhere, even in the middle of a flow."""
    RESET = "reset"
    CANCEL = "cancel"
    STATUS = "status"
    HELP = "help"


COMMAND_ALIASES = {
    "/reset": GlobalCommands.RESET,
    "reset": GlobalCommands.RESET,
    "/cancel": GlobalCommands.CANCEL,
    "/status": GlobalCommands.STATUS,
    "/debug": GlobalCommands.STATUS,
    "/help": GlobalCommands.HELP,
    "help": GlobalCommands.HELP,
}


def parse_command(text: Optional[str]) -> Optional[str]:
    """
    Returns the global command named by text, or None.
    Bare "cancel" is not global; flows handle it themselves.
    """
    if not text:
        return None
    return COMMAND_ALIASES.get(text.strip().lower())


def _format_age(seconds: Optional[float]) -> str:
    if seconds is None:
        return "none"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s" if minutes else f"{secs}s"


class CommandHandler:
    def __init__(self, sessions: SessionManager, queue: UserMessageQueue, caches: ExtractionCaches):
        self.sessions = sessions
        self.queue = queue
        self.caches = caches

    def reset(self, user_key: str) -> str:
        had_session = self.sessions.clear_session(user_key)
        cleared = self.caches.clear_user(user_key)
        logger.info(f"Reset for {user_key} (session cleared: {had_session}, cache entries cleared: {cleared})")
        return strings.RESET_DONE

    def cancel(self, user_key: str) -> str:
        session = self.sessions.get_session(user_key)
        if session is None:
            return strings.NOTHING_TO_CANCEL
        cancelled = session.flow.cancel_chain()
        self.sessions.clear_session(user_key)
        logger.info(f"Cancelled flow chain {cancelled} for {user_key}")
        return strings.CANCEL_DONE

    def status(self, user_key: str) -> str:
        lines = ["🔧 *Session status*", ""]

        snapshot = self.sessions.snapshot(user_key)
        if snapshot is None:
            lines.append("Flow: none")
        else:
            chain = " → ".join(f"{flow.intent} ({flow.step})" for flow in snapshot.chain)
            lines.append(f"Flow: {chain}")
            lines.append(f"Inactive for: {_format_age(snapshot.inactive_seconds)}")

        lines.append(f"Queued messages: {self.queue.queue_length(user_key)}")
        for namespace, age in self.caches.ages(user_key).items():
            lines.append(f"Cache '{namespace}': {_format_age(age)}")
        lines.append(f"Active sessions: {len(self.sessions.active_sessions())}")
        return "\n".join(lines)

    def help(self) -> str:
        return strings.HELP_MESSAGE

    def execute(self, command: str, user_key: str) -> str:
        if command == GlobalCommands.RESET:
            return self.reset(user_key)
        if command == GlobalCommands.CANCEL:
            return self.cancel(user_key)
        if command == GlobalCommands.STATUS:
            return self.status(user_key)
        if command == GlobalCommands.HELP:
            return self.help()
        raise ValueError(f"Unknown command: {command}")
