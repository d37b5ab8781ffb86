# /ledgerbot/flows/state.py

import time
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ledgerbot.config.settings import settings
from ledgerbot.flows.base import BaseFlow
from ledgerbot.models.events import InboundEvent
from ledgerbot.models.flow import SessionSnapshot
from ledgerbot.utils.metrics import active_sessions_gauge, flow_events_counter

# Owns the user -> active root flow mapping. Inactivity expiry is checked
# lazily whenever a session is looked up; sweep_expired() exists only to
# bound memory for users who never write again.

logger = logging.getLogger(__name__)


@dataclass
class Session:
    user_key: str
    flow: BaseFlow
    started_at: float
    last_activity_at: float

    def touch(self, now: float):
        # Timestamps never move backwards
        if now > self.last_activity_at:
            self.last_activity_at = now

    def snapshot(self, now: float) -> SessionSnapshot:
        return SessionSnapshot(
            user_key=self.user_key,
            root_flow=self.flow.snapshot(),
            started_at=self.started_at,
            last_activity_at=self.last_activity_at,
            inactive_seconds=max(0.0, now - self.last_activity_at),
        )


class SessionManager:
    def __init__(self, timeout_seconds: float = settings.flow_timeout_seconds, clock: Callable[[], float] = time.monotonic):
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._sessions: Dict[str, Session] = {}

    def _is_expired(self, session: Session, now: float) -> bool:
        return now - session.last_activity_at > self.timeout_seconds

    def _delete(self, user_key: str, reason: str) -> bool:
        session = self._sessions.pop(user_key, None)
        if session is None:
            return False
        logger.info(f"Clearing flow session for {user_key} (intent: {session.flow.intent}, reason: {reason})")
        flow_events_counter.labels(intent=session.flow.intent, event=reason).inc()
        active_sessions_gauge.set(len(self._sessions))
        return True

    def get_session(self, user_key: str) -> Optional[Session]:
        session = self._sessions.get(user_key)
        if session is None:
            return None

        now = self._clock()
        if self._is_expired(session, now):
            inactive_minutes = int((now - session.last_activity_at) // 60)
            logger.info(f"Flow session expired for {user_key} (inactive for {inactive_minutes} min)")
            self._delete(user_key, "expired")
            return None
        return session

    def start_flow(self, user_key: str, flow: BaseFlow) -> Session:
        """Binds flow as the user's root flow, replacing any previous session."""
        if user_key in self._sessions:
            self._delete(user_key, "replaced")
        now = self._clock()
        session = Session(user_key=user_key, flow=flow, started_at=now, last_activity_at=now)
        self._sessions[user_key] = session
        logger.info(f"Starting flow '{flow.intent}' for {user_key}")
        flow_events_counter.labels(intent=flow.intent, event="started").inc()
        active_sessions_gauge.set(len(self._sessions))
        return session

    async def route_turn(self, user_key: str, event: InboundEvent) -> Optional[str]:
        """
        Delivers event to the user's active flow chain.
        Returns None when the user has no active conversation.
        """
        session = self.get_session(user_key)
        if session is None:
            return None

        session.touch(self._clock())
        root = session.flow
        response = await root.dispatch_turn(event)

        if root.is_complete:
            logger.info(f"Flow '{root.intent}' finished ({root.step}) for {user_key}")
            self.end_flow(user_key, root)
        return response

    def end_flow(self, user_key: str, flow: BaseFlow) -> bool:
        """Deletes the session only if it still wraps flow."""
        session = self._sessions.get(user_key)
        if session is None or session.flow is not flow:
            return False
        return self._delete(user_key, flow.step if flow.is_complete else "ended")

    def clear_session(self, user_key: str) -> bool:
        """Unconditional, idempotent deletion."""
        return self._delete(user_key, "cleared")

    def has_active_flow(self, user_key: str) -> bool:
        return self.get_session(user_key) is not None

    def active_sessions(self) -> List[SessionSnapshot]:
        now = self._clock()
        return [
            session.snapshot(now)
            for session in list(self._sessions.values())
            if not self._is_expired(session, now)
        ]

    def sweep_expired(self) -> int:
        now = self._clock()
        expired = [key for key, session in self._sessions.items() if self._is_expired(session, now)]
        for key in expired:
            self._delete(key, "expired")
        if expired:
            logger.info(f"Swept {len(expired)} expired flow sessions")
        return len(expired)

    def snapshot(self, user_key: str) -> Optional[SessionSnapshot]:
        session = self.get_session(user_key)
        return session.snapshot(self._clock()) if session else None

    def __len__(self) -> int:
        return len(self._sessions)
