# backend/tests/unit/test_session_state.py
import pytest

from ledgerbot.flows.base import BaseFlow
from ledgerbot.flows.state import SessionManager
from ledgerbot.models.events import InboundEvent


class EchoFlow(BaseFlow):
    intent = "echo"

    async def start(self, event):
        self.step = "waiting"
        return "started"

    async def accept_turn(self, event):
        if event.clean_text == "stop":
            return self.finish("bye")
        return f"echo: {event.clean_text}"


def event(text):
    return InboundEvent(user_key="alice", text=text)


@pytest.fixture
def sessions(clock):
    return SessionManager(timeout_seconds=1800, clock=clock)


def test_get_session_returns_none_without_session(sessions):
    assert sessions.get_session("alice") is None
    assert not sessions.has_active_flow("alice")


def test_session_expires_only_strictly_after_timeout(sessions, clock):
    sessions.start_flow("alice", EchoFlow("alice"))

    clock.advance(1800)
    assert sessions.get_session("alice") is not None

    clock.advance(0.001)
    assert sessions.get_session("alice") is None
    # The expired session was evicted by the read
    assert len(sessions) == 0


@pytest.mark.asyncio
async def test_route_turn_refreshes_activity(sessions, clock):
    sessions.start_flow("alice", EchoFlow("alice"))

    clock.advance(1700)
    assert await sessions.route_turn("alice", event("hi")) == "echo: hi"

    clock.advance(1700)
    assert sessions.has_active_flow("alice")


@pytest.mark.asyncio
async def test_route_turn_without_session_returns_none(sessions):
    assert await sessions.route_turn("alice", event("hi")) is None


@pytest.mark.asyncio
async def test_route_turn_deletes_session_when_root_completes(sessions):
    sessions.start_flow("alice", EchoFlow("alice"))

    assert await sessions.route_turn("alice", event("stop")) == "bye"
    assert sessions.get_session("alice") is None


def test_start_flow_replaces_previous_session(sessions):
    first = EchoFlow("alice")
    second = EchoFlow("alice")
    sessions.start_flow("alice", first)
    sessions.start_flow("alice", second)

    assert sessions.get_session("alice").flow is second
    assert len(sessions) == 1


def test_end_flow_ignores_a_flow_that_is_no_longer_bound(sessions):
    stale = EchoFlow("alice")
    current = EchoFlow("alice")
    sessions.start_flow("alice", stale)
    sessions.start_flow("alice", current)

    assert sessions.end_flow("alice", stale) is False
    assert sessions.get_session("alice").flow is current
    assert sessions.end_flow("alice", current) is True
    assert sessions.get_session("alice") is None


def test_clear_session_is_idempotent(sessions):
    sessions.start_flow("alice", EchoFlow("alice"))
    assert sessions.clear_session("alice") is True
    assert sessions.clear_session("alice") is False


def test_sweep_expired_removes_only_expired_sessions(sessions, clock):
    sessions.start_flow("alice", EchoFlow("alice"))
    clock.advance(1000)
    sessions.start_flow("bob", EchoFlow("bob"))
    clock.advance(900)

    assert sessions.sweep_expired() == 1
    assert sessions.get_session("alice") is None
    assert sessions.get_session("bob") is not None


@pytest.mark.asyncio
async def test_active_sessions_snapshots(sessions, clock):
    flow = EchoFlow("alice", params={"note": "x"})
    sessions.start_flow("alice", flow)
    await flow.start(event("go"))
    clock.advance(60)

    snapshots = sessions.active_sessions()
    assert len(snapshots) == 1
    snapshot = snapshots[0]
    assert snapshot.user_key == "alice"
    assert snapshot.root_flow.intent == "echo"
    assert snapshot.root_flow.step == "waiting"
    assert snapshot.root_flow.data == {"note": "x"}
    assert snapshot.inactive_seconds == 60
