# /ledgerbot/flows/base.py

"""
Flow contract shared by every conversation.

A flow is a small state machine driven one inbound event at a time:

- `matches()` / `extract_params()` let the router decide whether free text
  should start the flow, and with which fields already filled in.
- `start()` handles the opening event, `accept_turn()` every later one.
- A flow finishes by moving `step` to `complete` or `cancelled`.

Delegation is a call stack, not a tree: a parent may hand the turn to one
child at a time with `delegate_to()`. Turns are delivered by
`dispatch_turn()`, which walks from the root to the deepest live child.
When a child reaches a terminal step its parent drops the reference and gets
`on_child_complete()` exactly once, with a cancellation marker if the child
was cancelled.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ledgerbot.config import strings
from ledgerbot.models.events import InboundEvent
from ledgerbot.models.flow import FlowSnapshot
from ledgerbot.utils.metrics import flow_events_counter

if TYPE_CHECKING:
    from ledgerbot.services.ai_service import AIService
    from ledgerbot.services.cache_service import ExtractionCaches
    from ledgerbot.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

CANCEL_WORDS = {"cancel", "cancelar", "stop", "salir"}
# Bare "help" is a global command, so flows only see these
HELP_WORDS = {"ayuda", "?"}


class FlowError(Exception):
    """Base class for flow errors."""


class FlowStateError(FlowError):
    """The flow contract was violated. This is a programming defect, not a user error."""


class FlowSteps:
    """Step labels every flow understands. Flows extend this with their own steps."""
    START = "start"
    COMPLETE = "complete"
    CANCELLED = "cancelled"

    TERMINAL = (COMPLETE, CANCELLED)


@dataclass
class FlowServices:
    """Collaborators injected into every flow instance."""
    ledger: Optional["LedgerService"] = None
    ai: Optional["AIService"] = None
    caches: Optional["ExtractionCaches"] = None


@dataclass
class ChildResult:
    """What a finished child hands back to its parent."""
    intent: str
    cancelled: bool = False
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def completed(self) -> bool:
        return not self.cancelled


class BaseFlow:
    intent: str = ""
    # Fields hidden from snapshots (large lists, collaborator objects)
    snapshot_exclude: tuple = ()

    def __init__(self, user_key: str, services: Optional[FlowServices] = None, params: Optional[Dict[str, Any]] = None):
        self.user_key = user_key
        self.services = services or FlowServices()
        self.step: str = FlowSteps.START
        self.data: Dict[str, Any] = dict(params or {})
        self.parent: Optional["BaseFlow"] = None
        self.child: Optional["BaseFlow"] = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} intent={self.intent!r} step={self.step!r}>"

    # --- Router hooks ---

    @classmethod
    def matches(cls, text: str) -> bool:
        """Whether free text should start this flow."""
        return False

    @classmethod
    def extract_params(cls, text: str) -> Dict[str, Any]:
        """Best-effort fields found in the opening message."""
        return {}

    # --- Lifecycle ---

    async def start(self, event: InboundEvent) -> Optional[str]:
        raise NotImplementedError(f"{type(self).__name__} must implement start()")

    async def accept_turn(self, event: InboundEvent) -> Optional[str]:
        raise NotImplementedError(f"{type(self).__name__} must implement accept_turn()")

    async def on_child_complete(self, result: ChildResult) -> Optional[str]:
        return None

    @property
    def is_complete(self) -> bool:
        return self.step in FlowSteps.TERMINAL

    @property
    def is_cancelled(self) -> bool:
        return self.step == FlowSteps.CANCELLED

    def finish(self, response: Optional[str] = None) -> Optional[str]:
        self.step = FlowSteps.COMPLETE
        flow_events_counter.labels(intent=self.intent, event="complete").inc()
        return response

    def cancel(self) -> str:
        self.step = FlowSteps.CANCELLED
        flow_events_counter.labels(intent=self.intent, event="cancelled").inc()
        return strings.FLOW_CANCELLED

    # --- Delegation ---

    async def delegate_to(self, child: "BaseFlow", event: InboundEvent) -> Optional[str]:
        """Hands the turn to child and starts it."""
        if self.child is not None:
            raise FlowStateError(f"{self!r} is already delegating to {self.child!r}")
        if child is self or child.parent is not None:
            raise FlowStateError(f"{child!r} cannot be delegated to by {self!r}")

        self.child = child
        child.parent = self
        logger.info(f"Flow '{self.intent}' delegating to '{child.intent}' for {self.user_key}")
        flow_events_counter.labels(intent=child.intent, event="delegated").inc()

        response = await child.start(event)
        if child.is_complete and self.child is child:
            return await self._resolve_child(child, response)
        return response

    async def dispatch_turn(self, event: InboundEvent) -> Optional[str]:
        """Delivers event to the deepest live flow of the chain starting here."""
        child = self.child
        if child is None:
            return await self.accept_turn(event)

        response = await child.dispatch_turn(event)
        if child.is_complete and self.child is child:
            return await self._resolve_child(child, response)
        return response

    async def _resolve_child(self, child: "BaseFlow", child_response: Optional[str]) -> Optional[str]:
        self.child = None
        result = ChildResult(intent=child.intent, cancelled=child.is_cancelled, data=dict(child.data))
        logger.info(
            f"Child flow '{child.intent}' {'cancelled' if result.cancelled else 'completed'}, "
            f"returning to '{self.intent}' for {self.user_key}"
        )
        response = await self.on_child_complete(result)
        return response if response is not None else child_response

    def active_flow(self) -> "BaseFlow":
        flow = self
        while flow.child is not None:
            flow = flow.child
        return flow

    def chain(self) -> List["BaseFlow"]:
        flows = [self]
        while flows[-1].child is not None:
            flows.append(flows[-1].child)
        return flows

    def cancel_chain(self) -> List[str]:
        """Cancels this flow and its live descendants, innermost first."""
        cancelled = []
        for flow in reversed(self.chain()):
            if flow.parent is not None and flow.parent.child is flow:
                flow.parent.child = None
            if not flow.is_complete:
                flow.cancel()
            cancelled.append(flow.intent)
        return cancelled

    # --- Shared turn helpers ---

    def handle_common_commands(self, event: InboundEvent) -> Optional[str]:
        normalized = event.clean_text.lower()
        if normalized in CANCEL_WORDS:
            return self.cancel()
        if normalized in HELP_WORDS:
            return self.get_help()
        return None

    def get_help(self) -> str:
        return strings.FLOW_HELP

    def snapshot(self) -> FlowSnapshot:
        data = {k: v for k, v in self.data.items() if k not in self.snapshot_exclude}
        return FlowSnapshot(
            intent=self.intent,
            step=self.step,
            data=data,
            child=self.child.snapshot() if self.child is not None else None,
        )
