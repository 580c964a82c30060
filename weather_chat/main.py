"""
Weather Chat - Main Entry Point

Streams AI chat answers over SSE while narrating each pipeline stage
(model init, prompt assembly, tool registration, tool calls, token
streaming) to the page's side panel.

Usage:
    python -m weather_chat.main

Environment Variables:
    AI_API_KEY          - Chat API key
    AI_BASE_URL         - Chat API base URL (default: https://api.openai.com)
    AI_COMPLETIONS_PATH - Completions path (default: /v1/chat/completions)
    AI_MODEL_NAME       - Model name (default: gpt-4o-mini)
    AI_TEMPERATURE      - Sampling temperature in [0, 1] (default: 0.7)
    AI_MAX_TOKENS       - Max generated tokens (default: 2048)
    AI_SYSTEM_PROMPT    - System prompt
    CHAT_HOST           - Server host (default: 0.0.0.0)
    CHAT_PORT           - Server port (default: 8080)
    STREAM_TIMEOUT      - Stream lifetime in seconds (default: 600)
    WEATHER_BASE_URL    - Weather site root (default: https://www.zgjia.com)
"""

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router as api_router
from .chat_client import chat_client
from .config import config
from .state import streams

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""

    # Startup
    logger.info("=" * 60)
    logger.info("Weather Chat Starting")
    logger.info("=" * 60)

    if not config.api_key:
        logger.warning("No AI_API_KEY configured - upstream requests will be unauthenticated")

    # Log configuration
    logger.info(f"Chat API: {config.completions_url}")
    logger.info(f"API key: {config.masked_api_key}")
    logger.info(f"Model: {config.model_name} (temperature={config.temperature}, max_tokens={config.max_tokens})")
    logger.info(f"Weather source: {config.weather_base_url}")
    logger.info(f"Stream timeout: {config.stream_timeout}s")

    logger.info("-" * 60)
    logger.info(f"Server ready at http://{config.host}:{config.port}")
    logger.info(f"Stream endpoint: http://{config.host}:{config.port}/chat/stream?message=...")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("Shutting down...")
    await streams.stop()
    await chat_client.close()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Weather Chat",
    description=(
        "Streams AI chat answers over server-sent events and narrates the "
        "model pipeline (prompt, tools, tokens) alongside them."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(api_router)


def main():
    """Run the chat server."""
    uvicorn.run(
        "weather_chat.main:app",
        host=config.host,
        port=config.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
