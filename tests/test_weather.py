"""Tests for the weather page lookup."""

from __future__ import annotations

import httpx
import pytest

from weather_chat.weather import (
    DEFAULT_CITY,
    UNAVAILABLE,
    USER_AGENT,
    Horizon,
    extract_weather,
    fetch_weather,
    weather_url,
)

PAGE = """
<html><body>
  <div class="header">Weather</div>
  <div class="wendu-box">Clear, 15°C</div>
  <div class="wendu-box">ignored second box</div>
</body></html>
"""


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestWeatherUrl:
    """Tests for weather_url."""

    def test_today(self):
        assert weather_url("shanghai", Horizon.TODAY) == "https://www.zgjia.com/shanghai/"

    def test_tomorrow(self):
        assert weather_url("shanghai", Horizon.TOMORROW) == "https://www.zgjia.com/shanghai/mingtian.html"

    def test_none_falls_back_to_default_city(self):
        assert weather_url(None, Horizon.TODAY) == f"https://www.zgjia.com/{DEFAULT_CITY}/"

    def test_custom_base_url_trailing_slash(self):
        assert weather_url("xian", Horizon.TODAY, "http://mirror.test/") == "http://mirror.test/xian/"


class TestExtractWeather:
    """Tests for extract_weather."""

    def test_first_box_wins(self):
        assert extract_weather(PAGE) == "Clear, 15°C"

    def test_nested_text_is_joined(self):
        html = '<div class="wendu-box"><span>Cloudy</span><span>12°C</span></div>'
        assert extract_weather(html) == "Cloudy 12°C"

    def test_missing_box(self):
        assert extract_weather("<html><body><p>nothing</p></body></html>") is None

    def test_empty_box(self):
        assert extract_weather('<div class="wendu-box">   </div>') is None


class TestFetchWeather:
    """Tests for fetch_weather."""

    @pytest.mark.asyncio
    async def test_returns_box_text(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=PAGE)

        async with mock_client(handler) as client:
            result = await fetch_weather("beijing", Horizon.TODAY, client=client)

        assert result == "Clear, 15°C"
        assert str(seen[0].url) == "https://www.zgjia.com/beijing/"
        assert seen[0].headers["User-Agent"] == USER_AGENT

    @pytest.mark.asyncio
    async def test_tomorrow_page_and_custom_source(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, text=PAGE)

        async with mock_client(handler) as client:
            await fetch_weather(
                "chengdu",
                Horizon.TOMORROW,
                base_url="https://weather.test",
                user_agent="TestBot/2.0",
                client=client,
            )

        assert seen == ["https://weather.test/chengdu/mingtian.html"]

    @pytest.mark.asyncio
    async def test_none_city_uses_default(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, text=PAGE)

        async with mock_client(handler) as client:
            await fetch_weather(None, Horizon.TODAY, client=client)

        assert seen == [f"https://www.zgjia.com/{DEFAULT_CITY}/"]

    @pytest.mark.asyncio
    async def test_network_error_returns_sentinel(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            result = await fetch_weather("beijing", Horizon.TODAY, client=client)

        assert result == UNAVAILABLE

    @pytest.mark.asyncio
    async def test_missing_box_returns_sentinel(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="<html><body>Not found</body></html>")

        async with mock_client(handler) as client:
            result = await fetch_weather("atlantis", Horizon.TODAY, client=client)

        assert result == UNAVAILABLE

    @pytest.mark.asyncio
    async def test_never_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("unexpected")

        async with mock_client(handler) as client:
            for horizon in Horizon:
                assert await fetch_weather("beijing", horizon, client=client) == UNAVAILABLE
