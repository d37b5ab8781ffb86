# /ledgerbot/models/api.py

from pydantic import BaseModel, Field
from typing import Dict, Optional
from datetime import datetime, timezone

# Pydantic models for the HTTP API envelopes.

class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str
