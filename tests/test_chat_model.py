"""Tests for the pydantic-ai chat model adapter, driven by a FunctionModel."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from pydantic_ai import (
    Agent,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.messages import ModelMessage
from pydantic_ai.models.function import AgentInfo, FunctionModel

from dadafarin.domain.models import ChatMessage
from dadafarin.infrastructure.chat_model import PydanticAIChatModel, build_history


class RecordingStream:
    """``stream_function`` that records what the agent hands to the model."""

    def __init__(self, fragments: tuple[str, ...] = ("سلام", " دنیا", "!")) -> None:
        self.fragments = fragments
        self.messages: list[ModelMessage] = []
        self.model_settings: dict | None = None

    async def __call__(self, messages: list[ModelMessage], info: AgentInfo) -> AsyncIterator[str]:
        self.messages = list(messages)
        self.model_settings = dict(info.model_settings or {})
        for fragment in self.fragments:
            yield fragment


@pytest.fixture()
def stream() -> RecordingStream:
    return RecordingStream()


@pytest.fixture()
def chat_model(stream: RecordingStream) -> PydanticAIChatModel:
    return PydanticAIChatModel(Agent(FunctionModel(stream_function=stream), output_type=str))


CONVERSATION = [
    ChatMessage(role="system", content="You are a Persian legal advisor."),
    ChatMessage(role="user", content="سوال اول"),
    ChatMessage(role="assistant", content="پاسخ اول"),
    ChatMessage(role="user", content="name: User - question: سوال دوم"),
]


def _parts(messages: list[ModelMessage]) -> list[tuple[str, str, str]]:
    return [
        (type(message).__name__, type(part).__name__, part.content)
        for message in messages
        for part in message.parts
    ]


class TestStreamComplete:
    async def test_relays_fragments_in_order(self, chat_model: PydanticAIChatModel):
        fragments = [f async for f in chat_model.stream_complete(CONVERSATION, 1.0)]

        assert "".join(fragments) == "سلام دنیا!"
        assert all(fragments)

    async def test_model_sees_system_prompt_history_then_new_turn(
        self, chat_model: PydanticAIChatModel, stream: RecordingStream
    ):
        async for _ in chat_model.stream_complete(CONVERSATION, 1.0):
            pass

        assert _parts(stream.messages) == [
            ("ModelRequest", "SystemPromptPart", "You are a Persian legal advisor."),
            ("ModelRequest", "UserPromptPart", "سوال اول"),
            ("ModelResponse", "TextPart", "پاسخ اول"),
            ("ModelRequest", "UserPromptPart", "name: User - question: سوال دوم"),
        ]

    async def test_forwards_temperature(
        self, chat_model: PydanticAIChatModel, stream: RecordingStream
    ):
        async for _ in chat_model.stream_complete(CONVERSATION, 0.3):
            pass

        assert stream.model_settings == {"temperature": 0.3}

    async def test_first_turn_without_history(
        self, chat_model: PydanticAIChatModel, stream: RecordingStream
    ):
        async for _ in chat_model.stream_complete([ChatMessage(role="user", content="سلام")], 1.0):
            pass

        assert _parts(stream.messages) == [("ModelRequest", "UserPromptPart", "سلام")]

    @pytest.mark.parametrize(
        "messages",
        [
            [],
            [ChatMessage(role="system", content="s")],
            [ChatMessage(role="user", content="q"), ChatMessage(role="assistant", content="a")],
        ],
    )
    async def test_last_message_must_be_user(self, chat_model: PydanticAIChatModel, messages):
        with pytest.raises(ValueError):
            async for _ in chat_model.stream_complete(messages, 1.0):
                pass


class TestBuildHistory:
    def test_maps_roles_to_message_parts(self):
        history = build_history(CONVERSATION[:-1])

        assert [type(m) for m in history] == [ModelRequest, ModelRequest, ModelResponse]
        assert isinstance(history[0].parts[0], SystemPromptPart)
        assert isinstance(history[1].parts[0], UserPromptPart)
        assert isinstance(history[2].parts[0], TextPart)
        assert history[2].parts[0].content == "پاسخ اول"

    def test_empty(self):
        assert build_history([]) == []
