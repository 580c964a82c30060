"""Exceptions raised inside a chat stream."""


class TransportError(Exception):
    """The client side of a relay is gone (disconnected, timed out or finalized)."""


class UpstreamStreamError(Exception):
    """The chat-completions stream failed.

    ``category`` names the kind of failure (usually the underlying exception
    class) and is what the error narration reports.
    """

    def __init__(self, category: str, message: str):
        super().__init__(message)
        self.category = category
        self.message = message

    def __str__(self) -> str:
        return f"{self.category}: {self.message}"
