"""Chat-completions API streaming client."""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from .config import Config, config
from .errors import UpstreamStreamError

logger = logging.getLogger(__name__)


class ChatClient:
    """
    Async client for an OpenAI-compatible chat-completions endpoint.

    Handles:
    - Streaming chat completions (SSE ``data:`` lines)
    - Reassembly of tool calls streamed as fragments
    - Mapping transport/HTTP/upstream failures to UpstreamStreamError
    """

    def __init__(self, settings: Optional[Config] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or config
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(300.0, connect=10.0),
            transport=transport,
        )

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    def build_payload(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": True,
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        return payload

    async def chat_stream(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream one chat completion.

        Yields chunks with structure:
        - {"type": "content", "content": "..."} - text content
        - {"type": "tool_call", "tool_call": {"id", "name", "arguments"}} - complete tool call
        - {"type": "done", "finish_reason": ...} - generation complete

        Tool calls arrive from the API as fragments keyed by index; they are
        buffered and yielded whole once the generation finishes.

        Raises:
            UpstreamStreamError: on HTTP errors, transport errors, or an
                error object in the stream.
        """
        payload = self.build_payload(model, messages, tools, temperature, max_tokens)
        headers = {"Accept": "text/event-stream"}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"

        tools_count = len(tools) if tools else 0
        logger.info(f"Starting chat stream: model={model}, messages={len(messages)}, tools={tools_count}")

        tool_buf: Dict[int, Dict[str, Any]] = {}
        finish_reason = None

        try:
            async with self.client.stream(
                "POST",
                self.settings.completions_url,
                json=payload,
                headers=headers,
            ) as response:
                if response.is_error:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error(f"Chat API HTTP error: {response.status_code}")
                    raise UpstreamStreamError(
                        "HTTPStatusError",
                        f"{response.status_code} from chat API: {body[:200]}",
                    )

                async for line in response.aiter_lines():
                    if not line or not line.startswith("data:"):
                        continue

                    data_str = line[5:].strip()
                    if data_str == "[DONE]":
                        break

                    try:
                        chunk = json.loads(data_str)
                    except json.JSONDecodeError:
                        logger.warning(f"Failed to parse chunk: {data_str[:100]}")
                        continue

                    if "error" in chunk:
                        error = chunk["error"]
                        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                        raise UpstreamStreamError("UpstreamError", message)

                    for choice in chunk.get("choices") or []:
                        delta = choice.get("delta") or {}

                        content = delta.get("content")
                        if content:
                            yield {"type": "content", "content": content}

                        for tc in delta.get("tool_calls") or []:
                            buf = tool_buf.setdefault(tc.get("index", 0), {"id": None, "name": None, "arguments": []})
                            if tc.get("id"):
                                buf["id"] = tc["id"]
                            fn = tc.get("function") or {}
                            if fn.get("name"):
                                buf["name"] = fn["name"]
                            if fn.get("arguments"):
                                buf["arguments"].append(fn["arguments"])

                        if choice.get("finish_reason"):
                            finish_reason = choice["finish_reason"]

        except httpx.HTTPError as e:
            logger.error(f"Chat stream error: {e}")
            raise UpstreamStreamError(type(e).__name__, str(e) or repr(e)) from e

        for idx in sorted(tool_buf):
            buf = tool_buf[idx]
            if not buf["name"]:
                continue
            yield {
                "type": "tool_call",
                "tool_call": {
                    "id": buf["id"] or f"call_{idx}",
                    "name": buf["name"],
                    "arguments": "".join(buf["arguments"]),
                },
            }

        yield {"type": "done", "finish_reason": finish_reason}


# Global instance
chat_client = ChatClient()
