"""
Chat page and SSE chat stream endpoints.

GET /chat/stream responds with ``text/event-stream`` carrying three event
types:
- "process"  narration JSON for the side panel (model init, prompt, tools...)
- "message"  answer text tokens for the chat panel
- "close"    "done" once the answer is complete
"""

import logging
from importlib import resources

from fastapi import APIRouter, BackgroundTasks, Query
from fastapi.responses import HTMLResponse, StreamingResponse

from .chat_client import chat_client
from .config import config
from .models import ChatRequest, HealthResponse
from .relay import EventRelay
from .state import StreamSession, streams
from .streaming import run_chat_stream

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def chat_page():
    """Render the chat page."""
    page = resources.files("weather_chat").joinpath("static/chat.html").read_text(encoding="utf-8")
    return HTMLResponse(page)


@router.get("/chat/stream")
async def chat_stream(message: str = Query(..., min_length=1)):
    """
    Open a narrated chat stream for ``message``.

    The stream's worker runs as its own task; this handler only wires up the
    relay and returns, so the response starts flowing immediately.
    """
    request = ChatRequest(message=message)
    relay = EventRelay(timeout=config.stream_timeout)
    session = StreamSession(relay=relay, message=request.message)

    logger.info(f"Chat stream {session.session_id}: {request.message[:80]!r}")
    streams.launch(session, run_chat_stream(session, chat_client, config))

    # Runs once the response is over, even if the body was never iterated
    cleanup = BackgroundTasks()
    cleanup.add_task(_release, relay)

    return StreamingResponse(
        relay.frames(),
        media_type="text/event-stream",
        headers={
            "X-Stream-ID": session.session_id,
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
        background=cleanup,
    )


async def _release(relay: EventRelay):
    if relay.deactivate("disconnect"):
        logger.info("Client left before the stream was drained")


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        model=config.model_name,
        base_url=config.base_url,
        active_streams=streams.active_count,
    )
