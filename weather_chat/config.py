"""Chat stream configuration."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SYSTEM_PROMPT = (
    "You are a friendly weather assistant. When the user asks about the weather "
    "in a city, call the matching weather tool with the lowercase pinyin of the "
    "city (for example beijing, shanghai, guangzhou) and answer from its result. "
    "Keep answers short and conversational."
)


@dataclass(frozen=True)
class Config:
    """Configuration loaded from environment variables."""

    # Upstream chat-completions API
    api_key: str = field(default_factory=lambda: os.getenv("AI_API_KEY", ""))
    base_url: str = field(default_factory=lambda: os.getenv("AI_BASE_URL", "https://api.openai.com"))
    completions_path: str = field(default_factory=lambda: os.getenv("AI_COMPLETIONS_PATH", "/v1/chat/completions"))
    model_name: str = field(default_factory=lambda: os.getenv("AI_MODEL_NAME", "gpt-4o-mini"))
    temperature: float = field(default_factory=lambda: float(os.getenv("AI_TEMPERATURE", "0.7")))
    max_tokens: int = field(default_factory=lambda: int(os.getenv("AI_MAX_TOKENS", "2048")))
    system_prompt: str = field(default_factory=lambda: os.getenv("AI_SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT))

    # Server
    host: str = field(default_factory=lambda: os.getenv("CHAT_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("CHAT_PORT", "8080")))

    # Streams
    stream_timeout: float = field(default_factory=lambda: float(os.getenv("STREAM_TIMEOUT", "600")))
    narration_pause: float = field(default_factory=lambda: float(os.getenv("NARRATION_PAUSE", "0.2")))
    max_tool_rounds: int = field(default_factory=lambda: int(os.getenv("MAX_TOOL_ROUNDS", "5")))

    # Weather source
    weather_base_url: str = field(default_factory=lambda: os.getenv("WEATHER_BASE_URL", "https://www.zgjia.com"))
    weather_user_agent: str = field(default_factory=lambda:
        os.getenv("WEATHER_USER_AGENT", "Mozilla/5.0 (compatible; WeatherBot/1.0)"))

    @property
    def completions_url(self) -> str:
        """Full URL of the chat-completions endpoint."""
        return f"{self.base_url.rstrip('/')}/{self.completions_path.lstrip('/')}"

    @property
    def masked_api_key(self) -> str:
        return f"sk-***{self.api_key[-4:]}" if self.api_key else "<unset>"

    def __post_init__(self):
        """Reject values the upstream API would refuse."""
        if not 0.0 <= self.temperature <= 1.0:
            raise ValueError(f"temperature must be within [0, 1], got {self.temperature}")
        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")
        if self.stream_timeout <= 0:
            raise ValueError(f"stream_timeout must be positive, got {self.stream_timeout}")
        if self.max_tool_rounds <= 0:
            raise ValueError(f"max_tool_rounds must be positive, got {self.max_tool_rounds}")


# Global config instance
config = Config()
