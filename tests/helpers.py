"""Shared test helpers (fake chat client, SSE parsing)."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple

from weather_chat.config import Config


def make_settings(**overrides) -> Config:
    values = {
        "api_key": "sk-test-abcd1234",
        "base_url": "http://upstream.test",
        "completions_path": "/v1/chat/completions",
        "model_name": "test-model",
        "temperature": 0.5,
        "max_tokens": 256,
        "system_prompt": "You are a weather assistant.",
        "narration_pause": 0.0,
        "stream_timeout": 5.0,
        "weather_base_url": "https://weather.test",
    }
    values.update(overrides)
    return Config(**values)


def content(text: str) -> Dict[str, Any]:
    return {"type": "content", "content": text}


def tool_call(name: str, arguments: Dict[str, Any], call_id: str = "call_1") -> Dict[str, Any]:
    return {
        "type": "tool_call",
        "tool_call": {"id": call_id, "name": name, "arguments": json.dumps(arguments)},
    }


DONE = {"type": "done", "finish_reason": "stop"}


class FakeChatClient:
    """
    Stands in for ChatClient.

    Each entry of ``generations`` is the chunk list for one chat_stream call;
    an Exception in the list is raised at that point of the stream.
    """

    def __init__(self, generations: List[List[Any]]):
        self.generations = list(generations)
        self.calls: List[Dict[str, Any]] = []

    async def chat_stream(self, **kwargs):
        self.calls.append({**kwargs, "messages": [dict(m) for m in kwargs["messages"]]})
        chunks = self.generations.pop(0)
        for chunk in chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    async def close(self):
        pass


def parse_sse(raw: str) -> List[Tuple[str, str]]:
    """Split an SSE body into (event, data) pairs."""
    events = []
    for block in raw.split("\n\n"):
        if not block.strip():
            continue
        event = "message"
        data_lines = []
        for line in block.split("\n"):
            if line.startswith("event: "):
                event = line[len("event: "):]
            elif line.startswith("data: "):
                data_lines.append(line[len("data: "):])
        events.append((event, "\n".join(data_lines)))
    return events


async def drain(relay) -> List[Tuple[str, str]]:
    """Collect everything a relay emits until it ends."""
    frames = [frame async for frame in relay.frames()]
    return parse_sse("".join(frames))


def steps(events: List[Tuple[str, str]]) -> List[str]:
    """Narration step tags, in order."""
    return [json.loads(data)["step"] for event, data in events if event == "process"]


def process_events(events: List[Tuple[str, str]]) -> List[Dict[str, Any]]:
    return [json.loads(data) for event, data in events if event == "process"]
