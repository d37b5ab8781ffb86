# /ledgerbot/models/flow.py

from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field


class FlowSnapshot(BaseModel):
    """
    Serializable view of one flow in a delegation chain.

    This is a PURE DATA model: flows produce it, the status command and the
    admin endpoint render it. It is also the unit that would be persisted if
    sessions ever had to survive a restart.
    """
    intent: str = Field(..., description="Intent name of the flow")
    step: str = Field(..., description="Current step label")
    data: Dict[str, Any] = Field(default_factory=dict, description="Flow-private fields")
    child: Optional["FlowSnapshot"] = Field(default=None, description="Live child flow, if delegating")


class SessionSnapshot(BaseModel):
    """Minimal durable unit per user: the root flow plus the session timestamps."""
    user_key: str
    root_flow: FlowSnapshot
    started_at: float = Field(..., description="Monotonic clock value when the session started")
    last_activity_at: float = Field(..., description="Monotonic clock value of the last turn")
    inactive_seconds: float = Field(default=0.0, description="Seconds since the last turn at snapshot time")

    @property
    def chain(self) -> List[FlowSnapshot]:
        flows = []
        current: Optional[FlowSnapshot] = self.root_flow
        while current is not None:
            flows.append(current)
            current = current.child
        return flows


FlowSnapshot.model_rebuild()
