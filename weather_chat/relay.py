"""
Server-sent-events relay for one chat stream.

A relay owns the outbound side of a single ``text/event-stream`` response.
The orchestrator pushes named events into it; the HTTP layer drains them in
submission order through ``frames()``. The relay also carries the session's
``active`` flag, which flips to False exactly once when the client
disconnects, the relay times out, or the stream completes.
"""

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Optional

from .errors import TransportError
from .models import NarrationEvent, Step

logger = logging.getLogger(__name__)

STREAM_TIMEOUT = 10 * 60.0  # seconds

# End-of-stream marker placed on the frame queue
_END = object()


def format_sse(event: str, data: str) -> str:
    """Format one SSE frame, one ``data:`` line per line of payload."""
    lines = data.split("\n")
    body = "".join(f"data: {line}\n" for line in lines)
    return f"event: {event}\n{body}\n"


class EventRelay:
    """
    Ordered SSE frame queue with lifecycle bookkeeping.

    Writes after deactivation or finalization raise TransportError, which is
    how the orchestrator learns the client is gone.
    """

    def __init__(self, timeout: float = STREAM_TIMEOUT):
        self.timeout = timeout
        self.reason: Optional[str] = None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._active = True
        self._finished = False
        self._error: Optional[BaseException] = None
        self._deadline = time.monotonic() + timeout

    @property
    def active(self) -> bool:
        return self._active

    @property
    def finished(self) -> bool:
        return self._finished

    def deactivate(self, reason: str) -> bool:
        """
        Mark the relay inactive.

        Only the first call has any effect; it records ``reason`` and returns
        True. Later calls return False.
        """
        if not self._active:
            return False
        self._active = False
        self.reason = reason
        logger.info(f"Relay deactivated: {reason}")
        return True

    # =========================================================================
    # Writing
    # =========================================================================

    def send(self, event: str, data: Any):
        """Queue one named event. Non-string payloads are sent as JSON."""
        if not self._active:
            raise TransportError(f"relay inactive ({self.reason}), dropping '{event}' event")
        if self._finished:
            raise TransportError(f"relay already finalized, dropping '{event}' event")

        if not isinstance(data, str):
            data = json.dumps(data, ensure_ascii=False)
        self._queue.put_nowait(format_sse(event, data))

    def send_process(self, event: NarrationEvent):
        self.send("process", event.to_json())

    def message(self, text: str):
        self.send("message", text)

    def close(self, data: str = "done"):
        """Send the terminal ``close`` event and finalize normally."""
        self.send("close", data)
        self.complete()

    def complete(self):
        """Finalize normally; queued frames still flush to the client."""
        if self._finished:
            raise TransportError("relay already finalized")
        self._finished = True
        self._queue.put_nowait(_END)

    def abort(self, error: BaseException):
        """Finalize in an error state; the response is cut off once drained."""
        if self._finished:
            return
        self._finished = True
        self._error = error
        self._queue.put_nowait(_END)

    def fail(self, message: str):
        """
        Best-effort failure report: a final ``message`` event, then finalize.

        Never raises. A relay whose client is already gone is aborted quietly;
        any other failure is logged as a warning before aborting.
        """
        try:
            self.message(message)
            self.complete()
        except TransportError as e:
            logger.debug(f"Could not deliver failure message, client gone: {e}")
            self.abort(e)
        except Exception as e:
            logger.warning(f"Failed to finalize relay cleanly: {e}")
            self.abort(e)

    # =========================================================================
    # Draining
    # =========================================================================

    async def frames(self) -> AsyncIterator[str]:
        """
        Yield queued frames until the stream ends.

        Ends on the end-of-stream marker, when the relay timeout expires, or
        when the consumer stops iterating (client disconnect). Whichever
        happens first deactivates the relay.
        """
        reason = "disconnect"
        try:
            while True:
                remaining = self._deadline - time.monotonic()
                if remaining <= 0:
                    reason = "timeout"
                    return
                try:
                    frame = await asyncio.wait_for(self._queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    reason = "timeout"
                    return

                if frame is _END:
                    if self._error is not None:
                        reason = "error"
                        raise self._error
                    reason = "complete"
                    return

                yield frame
        finally:
            if reason == "timeout":
                logger.warning(f"Relay timed out after {self.timeout}s")
            self.deactivate(reason)


def narrate(
    relay: EventRelay,
    step: Step,
    title: str,
    content: str,
    detail: Optional[str] = None,
):
    """Send a narration event, ignoring a relay whose client is gone."""
    try:
        relay.send_process(NarrationEvent(step=step, title=title, content=content, detail=detail))
    except TransportError as e:
        logger.debug(f"Dropped {step.value} narration: {e}")
