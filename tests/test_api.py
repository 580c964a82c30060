"""Tests for the HTTP endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.helpers import DONE, FakeChatClient, content, make_settings, parse_sse, steps
from weather_chat import api
from weather_chat.main import app
from weather_chat.relay import EventRelay
from weather_chat.state import streams


@pytest.fixture
def fake_client(monkeypatch):
    client = FakeChatClient([[content("Hel"), content("lo"), DONE]])
    monkeypatch.setattr("weather_chat.api.chat_client", client)
    monkeypatch.setattr("weather_chat.main.chat_client", client)
    monkeypatch.setattr("weather_chat.api.config", make_settings())
    return client


@pytest.fixture
def http(fake_client):
    with TestClient(app) as client:
        yield client


class TestChatStreamEndpoint:
    """Tests for GET /chat/stream."""

    def test_streams_narration_tokens_and_close(self, http, fake_client):
        response = http.get("/chat/stream", params={"message": "hi"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["x-stream-id"].startswith("stream_")
        assert response.headers["cache-control"] == "no-cache"

        events = parse_sse(response.text)
        assert steps(events) == [
            "model_init", "prompt_build", "tool_register", "api_call", "streaming", "complete",
        ]
        assert [data for event, data in events if event == "message"] == ["Hel", "lo"]
        assert events[-1] == ("close", "done")
        assert fake_client.calls[0]["messages"][-1] == {"role": "user", "content": "hi"}

    def test_missing_message_is_rejected(self, http):
        assert http.get("/chat/stream").status_code == 422

    def test_empty_message_is_rejected(self, http):
        assert http.get("/chat/stream", params={"message": ""}).status_code == 422


class TestPages:
    def test_chat_page(self, http):
        response = http.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "EventSource" in response.text
        assert "/chat/stream" in response.text

    def test_health(self, http):
        response = http.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["model"] == "test-model"
        assert body["base_url"] == "http://upstream.test"
        assert body["active_streams"] >= 0


class TestStreamRelease:
    @pytest.mark.asyncio
    async def test_unread_response_still_releases_relay(self, monkeypatch):
        relays = []

        class RecordingRelay(EventRelay):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                relays.append(self)

        monkeypatch.setattr("weather_chat.api.EventRelay", RecordingRelay)
        monkeypatch.setattr("weather_chat.api.chat_client", FakeChatClient([[content("Hel"), DONE]]))
        monkeypatch.setattr("weather_chat.api.config", make_settings())

        response = await api.chat_stream(message="hi")
        try:
            # Client gone before the body was iterated
            await response.background()

            assert relays[0].reason == "disconnect"
            assert not relays[0].active
        finally:
            await streams.stop()
