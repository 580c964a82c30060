"""Stream session state and the registry of running streams."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Coroutine, Dict, List

from .relay import EventRelay

logger = logging.getLogger(__name__)


@dataclass
class StreamSession:
    """
    State of one chat stream request.

    Tracks:
    - The relay feeding the client's SSE response
    - The accumulated answer text
    - When the stream started
    """
    relay: EventRelay
    message: str
    session_id: str = field(default_factory=lambda: f"stream_{uuid.uuid4().hex[:8]}")
    chunks: List[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def active(self) -> bool:
        return self.relay.active

    def append(self, token: str):
        self.chunks.append(token)

    @property
    def response_text(self) -> str:
        return "".join(self.chunks)

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


class StreamRegistry:
    """
    Runs one task per stream and keeps track of them.

    Handles:
    - Launching a stream's worker without blocking the request handler
    - Forgetting tasks once they finish
    - Cancelling whatever is still running on shutdown
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}

    def launch(self, session: StreamSession, worker: Coroutine) -> asyncio.Task:
        """Start ``worker`` as the task owning ``session``."""
        task = asyncio.create_task(worker, name=session.session_id)
        self._tasks[session.session_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(session.session_id, None))
        logger.info(f"Launched stream {session.session_id}")
        return task

    async def stop(self):
        """Cancel and await all running streams."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} running streams")
        self._tasks.clear()

    @property
    def active_count(self) -> int:
        """Number of running streams."""
        return len(self._tasks)


# Global instance
streams = StreamRegistry()
