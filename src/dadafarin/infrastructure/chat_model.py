"""Streaming chat model: a PydanticAI agent over an OpenAI-compatible endpoint (DeepSeek)."""

from __future__ import annotations

from collections.abc import AsyncIterator

from openai import AsyncOpenAI
from pydantic_ai import (
    Agent,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider

from dadafarin.domain.models import ChatMessage


def create_agent(
    model_name: str, api_key: str, base_url: str, instrument: bool = False
) -> Agent[None, str]:
    """Build a tool-less text agent; the system prompt travels in the message history."""
    client = AsyncOpenAI(api_key=api_key, base_url=base_url)
    model = OpenAIChatModel(model_name, provider=OpenAIProvider(openai_client=client))
    return Agent(model=model, output_type=str, instrument=instrument)


class PydanticAIChatModel:
    """``IChatModel`` implementation that relays the agent's text deltas."""

    def __init__(self, agent: Agent[None, str]) -> None:
        self.agent = agent

    @classmethod
    def from_settings(
        cls, model_name: str, api_key: str, base_url: str, instrument: bool = False
    ) -> PydanticAIChatModel:
        return cls(create_agent(model_name, api_key, base_url, instrument=instrument))

    async def stream_complete(
        self, messages: list[ChatMessage], temperature: float
    ) -> AsyncIterator[str]:
        """Stream the reply to *messages*; the last message must be the user's turn."""
        if not messages or messages[-1].role != "user":
            raise ValueError("messages must end with a user message")

        history = build_history(messages[:-1])
        async with self.agent.run_stream(
            messages[-1].content,
            message_history=history or None,
            model_settings={"temperature": temperature},
        ) as stream:
            async for delta in stream.stream_text(delta=True):
                if delta:
                    yield delta


def build_history(prior_messages: list[ChatMessage]) -> list[ModelRequest | ModelResponse]:
    """Convert prior ChatMessages into PydanticAI message-history objects."""
    history: list[ModelRequest | ModelResponse] = []
    for msg in prior_messages:
        if msg.role == "system":
            history.append(ModelRequest(parts=[SystemPromptPart(content=msg.content)]))
        elif msg.role == "user":
            history.append(ModelRequest(parts=[UserPromptPart(content=msg.content)]))
        else:
            history.append(ModelResponse(parts=[TextPart(content=msg.content)]))
    return history
