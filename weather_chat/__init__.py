"""
Weather Chat

SSE chat backend that narrates its own pipeline while streaming answers.

Components:
- streaming: Per-request driver narrating each stage and relaying tokens
- relay: SSE event relay with the stream's active flag
- chat_session: Tool-calling loop over the chat-completions stream
- chat_client: Chat-completions API streaming client
- tools: Weather tools exposed to the model
- weather: Weather page lookup
- api: Chat page and stream endpoints
"""

__version__ = "0.1.0"
