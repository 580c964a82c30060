"""Data models for the chat stream."""

import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ============================================================================
# Request/Response Models
# ============================================================================

class ChatRequest(BaseModel):
    """Inbound chat message."""
    message: str = Field(..., min_length=1)


class HealthResponse(BaseModel):
    """Health endpoint payload."""
    status: str = "healthy"
    model: str
    base_url: str
    active_streams: int = 0


# ============================================================================
# Narration
# ============================================================================

class Step(str, Enum):
    """Pipeline stage tag carried by every narration event."""
    MODEL_INIT = "model_init"
    PROMPT_BUILD = "prompt_build"
    TOOL_REGISTER = "tool_register"
    API_CALL = "api_call"
    STREAMING = "streaming"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    COMPLETE = "complete"
    ERROR = "error"


def _now_ms() -> int:
    return int(time.time() * 1000)


class NarrationEvent(BaseModel):
    """
    One entry of the side-panel narration.

    ``content`` is the short summary shown in the panel, ``detail`` the
    verbose rendering shown in the inspector popup (the popup falls back to
    ``content`` when it is missing).
    """
    step: Step
    title: str
    content: str
    detail: Optional[str] = None
    timestamp: int = Field(default_factory=_now_ms)

    def to_json(self) -> str:
        """Serialize for the ``process`` event, leaving out an absent detail."""
        return self.model_dump_json(exclude_none=True)
