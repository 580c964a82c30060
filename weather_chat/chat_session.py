"""
Chat session bound to a model, a system prompt and the weather tools.

The session runs the tool-calling loop on top of the streaming client:
- Content deltas are yielded to the caller as they arrive
- When a generation ends with tool calls, the tools are executed and their
  results appended to the conversation
- A new generation then starts, until the model answers without tools
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List

from .chat_client import ChatClient
from .config import Config
from .errors import UpstreamStreamError
from .tools import WeatherTools

logger = logging.getLogger(__name__)


class ChatSession:
    """Streams one user message through the model, executing tool calls."""

    def __init__(self, client: ChatClient, settings: Config, tools: WeatherTools):
        self.client = client
        self.settings = settings
        self.tools = tools

    async def stream(self, user_message: str) -> AsyncIterator[str]:
        """Yield the text tokens of the model's final answer."""
        messages = build_messages(self.settings.system_prompt, user_message)

        for gen_num in range(1, self.settings.max_tool_rounds + 1):
            logger.info(f"Starting generation {gen_num}")

            content_parts: List[str] = []
            tool_calls: List[Dict[str, Any]] = []

            async for chunk in self.client.chat_stream(
                model=self.settings.model_name,
                messages=messages,
                tools=self.tools.definitions(),
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
            ):
                chunk_type = chunk.get("type")

                if chunk_type == "content":
                    content_parts.append(chunk["content"])
                    yield chunk["content"]

                elif chunk_type == "tool_call":
                    tool_calls.append(chunk["tool_call"])

            if not tool_calls:
                logger.info(f"Chat session complete after {gen_num} generations")
                return

            messages.append(_assistant_tool_message("".join(content_parts), tool_calls))
            for call in tool_calls:
                logger.info(f"Tool call: {call['name']}")
                result = await self.tools.invoke(call["name"], _parse_arguments(call["arguments"]))
                messages.append({"role": "tool", "tool_call_id": call["id"], "content": result})

        raise UpstreamStreamError(
            "ToolLoopLimit",
            f"model kept calling tools after {self.settings.max_tool_rounds} generations",
        )


def build_messages(system_prompt: str, user_message: str) -> List[Dict[str, Any]]:
    """Opening conversation: system prompt, then the user's message."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_message},
    ]


def _assistant_tool_message(content: str, tool_calls: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Echo the model's tool calls back in chat-completions format."""
    return {
        "role": "assistant",
        "content": content or None,
        "tool_calls": [
            {
                "id": call["id"],
                "type": "function",
                "function": {"name": call["name"], "arguments": call["arguments"] or "{}"},
            }
            for call in tool_calls
        ],
    }


def _parse_arguments(raw: str) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Unparseable tool arguments: {raw[:100]}")
        return {}
    return parsed if isinstance(parsed, dict) else {}
