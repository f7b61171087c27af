"""Domain entities and value objects.

These are the core data structures of the assistant domain, independent of
any infrastructure or framework concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

# ---------------------------------------------------------------------------
# Accounts & subscriptions
# ---------------------------------------------------------------------------


@dataclass
class User:
    id: int
    email: str
    password_hash: str
    first_name: str | None
    last_name: str | None
    valid_until: datetime | None
    created_at: str


@dataclass
class Price:
    """A purchasable subscription option: ``time`` hours for ``price``."""

    time: int
    price: float


class PaymentStatus(StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


@dataclass
class Transaction:
    id: int
    user_id: int
    valid_until: datetime
    amount_paid: float
    payment_status: PaymentStatus
    id_get: str
    trans_id: str | None = None
    external_payment_id: str | None = None
    created_at: str = ""


# ---------------------------------------------------------------------------
# Conversations (durable log)
# ---------------------------------------------------------------------------


class Sender(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    """One immutable row of the append-only conversation log."""

    id: int
    user_id: int
    conversation_id: str
    sender: Sender
    message: str
    name: str
    created_at: str


@dataclass(frozen=True)
class ConversationSummary:
    conversation_id: str
    name: str
    created_at: str


# ---------------------------------------------------------------------------
# Model-facing messages & retrieval
# ---------------------------------------------------------------------------


@dataclass
class ChatMessage:
    """A message as sent to the chat-completion model."""

    role: str  # "system" | "user" | "assistant"
    content: str


@dataclass(frozen=True)
class Chunk:
    """A bounded-length piece of a source document plus its embedding."""

    text: str
    embedding: tuple[float, ...]


@dataclass(frozen=True)
class ScoredChunk:
    chunk: Chunk
    similarity: float


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class StreamEventType(StrEnum):
    DATA = "data"
    END = "end"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    """One event relayed to the client while a reply is being generated."""

    type: StreamEventType
    payload: dict = field(default_factory=dict)

    @classmethod
    def data(cls, fragment: str) -> StreamEvent:
        return cls(StreamEventType.DATA, {"data": fragment})

    @classmethod
    def end(cls) -> StreamEvent:
        return cls(StreamEventType.END, {"data": "[DONE]"})

    @classmethod
    def error(cls, message: str = "Streaming failed") -> StreamEvent:
        return cls(StreamEventType.ERROR, {"error": message})
