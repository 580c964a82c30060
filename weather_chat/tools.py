"""Weather tools exposed to the chat model, narrating every call."""

import json
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .config import Config, config
from .models import NarrationEvent, Step
from .weather import DEFAULT_CITY, Horizon, fetch_weather

logger = logging.getLogger(__name__)

EventSink = Callable[[NarrationEvent], None]
WeatherLookup = Callable[[Optional[str], Horizon], Awaitable[str]]

CITY_CODE_DESCRIPTION = (
    "Lowercase pinyin of the city to look up, e.g. beijing, shanghai, guangzhou, "
    "shenzhen, chengdu, hangzhou, wuhan, nanjing, chongqing, xian, fuzhou"
)


def _function(name: str, description: str) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": {
                    "city_code": {"type": "string", "description": CITY_CODE_DESCRIPTION},
                },
                "required": ["city_code"],
            },
        },
    }


TOOLS = [
    _function(
        "getWeather",
        "Look up today's live weather for a city, including conditions and temperature.",
    ),
    _function(
        "getTomorrowWeather",
        "Look up tomorrow's weather forecast for a city, including conditions and temperature.",
    ),
]


def default_lookup(settings: Optional[Config] = None) -> WeatherLookup:
    """fetch_weather bound to the configured weather source."""
    settings = settings or config
    return partial(
        fetch_weather,
        base_url=settings.weather_base_url,
        user_agent=settings.weather_user_agent,
    )


class WeatherTools:
    """
    Tool surface for one stream session.

    Every operation reports a ``tool_call`` narration event before doing any
    work and a ``tool_result`` event afterwards through the injected sink.
    The sink is best-effort: whatever it raises is dropped so a broken
    narration channel never fails the tool call itself.
    """

    def __init__(self, sink: Optional[EventSink] = None, lookup: Optional[WeatherLookup] = None):
        self._sink = sink
        self._lookup = lookup or default_lookup()
        self._handlers = {
            "getWeather": self.get_weather,
            "getTomorrowWeather": self.get_tomorrow_weather,
        }

    def definitions(self) -> List[Dict[str, Any]]:
        """Tool schemas in chat-completions format."""
        return TOOLS

    def describe(self) -> List[Tuple[str, str]]:
        """(name, description) pairs for narration."""
        return [(t["function"]["name"], t["function"]["description"]) for t in TOOLS]

    async def get_weather(self, city_code: Optional[str]) -> str:
        """Today's weather for ``city_code``."""
        return await self._run("getWeather", city_code, Horizon.TODAY)

    async def get_tomorrow_weather(self, city_code: Optional[str]) -> str:
        """Tomorrow's weather for ``city_code``."""
        return await self._run("getTomorrowWeather", city_code, Horizon.TOMORROW)

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> str:
        """Dispatch a model-issued function call by name."""
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning(f"Tool not found: {name}")
            return f"Requested tool '{name}' is not available."
        return await handler(arguments.get("city_code"))

    async def _run(self, name: str, city_code: Optional[str], horizon: Horizon) -> str:
        call_args = json.dumps({"city_code": city_code}, ensure_ascii=False, indent=2)
        self._notify(
            Step.TOOL_CALL,
            "Tool call",
            f"Calling: {name}(\"{city_code}\")\nPurpose: look up {horizon.value}'s weather",
            f"// The model decided to call a tool\nFunction call: {name}\nArguments: {call_args}",
        )

        result = await self._lookup(city_code, horizon)
        formatted = f"{city_code or DEFAULT_CITY} {horizon.value} weather: {result}"
        logger.info(f"Tool {name}({city_code}) -> {formatted}")

        self._notify(
            Step.TOOL_RESULT,
            "Tool result",
            f"Returned: {formatted}",
            f"// Tool execution result\nTool: {name}(\"{city_code}\")\nStatus: SUCCESS\n\n{formatted}",
        )
        return formatted

    def _notify(self, step: Step, title: str, content: str, detail: str):
        if self._sink is None:
            return
        try:
            self._sink(NarrationEvent(step=step, title=title, content=content, detail=detail))
        except Exception as e:
            # Client may already be gone
            logger.debug(f"Dropped {step.value} narration: {e}")
