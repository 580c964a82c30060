"""
Per-request chat stream driver.

Walks a fixed pipeline and narrates every stage to the client's side panel:

    model_init -> prompt_build -> tool_register -> api_call -> streaming
        -> complete | error

Tokens from the model are relayed as ``message`` events for as long as the
relay stays active; tool calls made by the model mid-stream add their own
``tool_call`` / ``tool_result`` narration through the same relay.
"""

import asyncio
import json
import logging

from .chat_client import ChatClient
from .chat_session import ChatSession, build_messages
from .config import Config
from .errors import TransportError, UpstreamStreamError
from .models import Step
from .relay import narrate
from .state import StreamSession
from .tools import WeatherTools, default_lookup

logger = logging.getLogger(__name__)


async def run_chat_stream(session: StreamSession, client: ChatClient, settings: Config):
    """
    Drive one chat stream from first narration to the final close.

    Never raises: upstream failures, interruption and unexpected errors all
    end up as an ``error`` narration event and a finalized relay.
    """
    relay = session.relay
    message = session.message
    consumer = None

    try:
        # ========== Stage 1: model init ==========
        options = {
            "model": settings.model_name,
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
        }
        narrate(
            relay, Step.MODEL_INIT, "Model initialization",
            f"Model: {settings.model_name}\n"
            f"Temperature: {settings.temperature}\n"
            f"Max tokens: {settings.max_tokens}\n"
            f"API base: {settings.base_url}",
            "// Chat model options\n"
            + json.dumps(options, indent=2)
            + "\n\n// API connection\n"
            f"API_KEY  = \"{settings.masked_api_key}\"\n"
            f"BASE_URL = \"{settings.base_url}\"",
        )
        await asyncio.sleep(settings.narration_pause)

        # ========== Stage 2: prompt assembly ==========
        messages = build_messages(settings.system_prompt, message)
        narrate(
            relay, Step.PROMPT_BUILD, "Prompt assembly",
            f"[ System Prompt ]\n{settings.system_prompt}\n\n[ User Message ]\n{message}",
            "// Full prompt structure\n" + json.dumps({"messages": messages}, ensure_ascii=False, indent=2),
        )
        await asyncio.sleep(settings.narration_pause)

        # ========== Stage 3: tools bound to this stream's narration ==========
        tools = WeatherTools(sink=relay.send_process, lookup=default_lookup(settings))
        tool_lines = "\n".join(f"  - {name}: {desc}" for name, desc in tools.describe())
        narrate(
            relay, Step.TOOL_REGISTER, "Tool registration",
            f"Registered tools available to the model:\n{tool_lines}",
            "// Tool schemas sent with every request\n"
            + json.dumps(tools.definitions(), ensure_ascii=False, indent=2)
            + "\n\n// The model decides on its own whether to call them",
        )
        await asyncio.sleep(settings.narration_pause)

        # ========== Stage 4: chat session + request ==========
        chat = ChatSession(client, settings, tools)
        request_summary = {
            "model": settings.model_name,
            "stream": True,
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
            "tools": [name for name, _ in tools.describe()],
            "messages": messages,
        }
        narrate(
            relay, Step.API_CALL, "API request",
            f"Endpoint: {settings.completions_url}\n"
            f"Model: {settings.model_name}\n"
            "Streaming: yes\n"
            "Tool calling: enabled",
            f"POST {settings.completions_url}\n"
            f"Authorization: Bearer {settings.masked_api_key}\n\n"
            + json.dumps(request_summary, ensure_ascii=False, indent=2),
        )

        # ========== Stage 5: relay the token stream ==========
        narrate(
            relay, Step.STREAMING, "Streaming response", "Waiting for the model...",
            "// Streaming response handling\n"
            "async for token in chat.stream(message):\n"
            "    relay.message(token)   # pushed to the chat panel\n"
            "    session.append(token)\n\n"
            "// On completion\n"
            "relay.close(\"done\")",
        )

        finished = asyncio.Event()
        consumer = asyncio.create_task(_consume(chat, session, finished))
        try:
            await asyncio.wait_for(finished.wait(), timeout=settings.stream_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Stream {session.session_id} still running after {settings.stream_timeout}s, giving up")
            consumer.cancel()
            await asyncio.gather(consumer, return_exceptions=True)
            narrate(
                relay, Step.ERROR, "Timed out",
                f"No complete answer within {settings.stream_timeout}s",
            )
            relay.fail(f"AI response error: no complete answer within {settings.stream_timeout}s")

    except asyncio.CancelledError:
        logger.info(f"Stream {session.session_id} interrupted")
        if consumer is not None and not consumer.done():
            consumer.cancel()
        narrate(relay, Step.ERROR, "Interrupted", "Chat processing was interrupted")
        relay.fail("Chat processing was interrupted")

    except Exception as e:
        logger.exception(f"Stream {session.session_id} failed")
        narrate(relay, Step.ERROR, "Unexpected error", f"{type(e).__name__}: {str(e) or 'unknown error'}")
        relay.fail(f"Service error: {e}")


async def _consume(chat: ChatSession, session: StreamSession, finished: asyncio.Event):
    """Forward model tokens to the relay, then report completion or failure."""
    relay = session.relay
    stream = chat.stream(session.message)

    try:
        try:
            async for token in stream:
                if not session.active:
                    logger.info(f"Stream {session.session_id} inactive ({relay.reason}), discarding output")
                    return
                if not token:
                    continue
                try:
                    relay.message(token)
                except TransportError as e:
                    logger.debug(f"Token dropped, client gone: {e}")
                    relay.deactivate("error")
                    return
                session.append(token)
        finally:
            await stream.aclose()

    except Exception as e:
        _on_error(session, e)

    else:
        _on_complete(session)

    finally:
        finished.set()


def _on_complete(session: StreamSession):
    relay = session.relay
    if not session.active:
        logger.info(f"Stream {session.session_id} finished after client left ({relay.reason})")
        return

    logger.info(f"Stream {session.session_id} complete: {len(session.response_text)} chars in {session.elapsed_ms}ms")
    narrate(
        relay, Step.COMPLETE, "Generation complete",
        f"Elapsed: {session.elapsed_ms}ms\nResponse length: {len(session.response_text)} chars",
    )
    try:
        relay.close("done")
    except TransportError as e:
        logger.debug(f"Close signal not delivered: {e}")


def _on_error(session: StreamSession, error: Exception):
    if isinstance(error, UpstreamStreamError):
        category, message = error.category, error.message
    else:
        category, message = type(error).__name__, str(error)

    logger.error(f"Stream {session.session_id} upstream error: {category}: {message}")
    narrate(session.relay, Step.ERROR, "Error", f"{category}: {message}")
    session.relay.fail(f"AI response error: {message}")
