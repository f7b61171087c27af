"""Domain service interfaces (ports).

These protocols define the contracts that infrastructure implementations
must satisfy.  The application layer depends on these abstractions,
not on concrete classes.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime
from typing import Protocol, runtime_checkable

from dadafarin.domain.models import (
    ChatMessage,
    ConversationSummary,
    Price,
    ScoredChunk,
    Sender,
    Transaction,
    Turn,
    User,
)

# ---------------------------------------------------------------------------
# Hosted models
# ---------------------------------------------------------------------------


@runtime_checkable
class IEmbeddingService(Protocol):
    """Interface for text embedding services.

    Implementations: OpenAIEmbeddingService, fakes in tests.
    """

    async def embed_text(self, text: str) -> list[float]: ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]: ...


@runtime_checkable
class IChatModel(Protocol):
    """Interface for a streaming chat-completion model.

    ``stream_complete`` returns a lazy, single-use sequence of text fragments
    that closes after the final fragment.
    """

    def stream_complete(
        self, messages: list[ChatMessage], temperature: float
    ) -> AsyncIterator[str]: ...


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


@runtime_checkable
class IVectorStore(Protocol):
    """Interface for the in-memory similarity search over document chunks."""

    async def add_documents(self, texts: list[str]) -> None: ...

    async def similarity_search(self, query: str, k: int = 5) -> list[ScoredChunk]: ...


# ---------------------------------------------------------------------------
# Durable stores
# ---------------------------------------------------------------------------


@runtime_checkable
class IConversationStore(Protocol):
    """Append-only conversation log.

    Implementations: ConversationStore (SQLite-backed).
    """

    def append(
        self, user_id: int, conversation_id: str, sender: Sender, message: str, name: str
    ) -> Turn: ...

    def list_ordered(self, user_id: int, conversation_id: str) -> list[Turn]: ...

    def list_conversations(self, user_id: int) -> list[ConversationSummary]: ...

    def delete_all(self, user_id: int, conversation_id: str) -> int: ...

    def get_name(self, user_id: int, conversation_id: str) -> str | None: ...


@runtime_checkable
class IAccountStore(Protocol):
    """Users, subscription validity, prices and payment transactions.

    Implementations: AccountStore (SQLite-backed).
    """

    def create_user(
        self,
        email: str,
        password_hash: str,
        first_name: str | None,
        last_name: str | None,
        valid_until: datetime | None,
    ) -> User: ...

    def get_user(self, user_id: int) -> User | None: ...

    def get_user_by_email(self, email: str) -> User | None: ...

    def get_valid_until(self, user_id: int) -> datetime | None: ...

    def list_prices(self) -> list[Price]: ...

    def get_price_by_time(self, hours: int) -> Price | None: ...

    def get_price_by_amount(self, amount: float) -> Price | None: ...

    def create_pending_transaction(
        self, user_id: int, valid_until: datetime, amount_paid: float, id_get: str
    ) -> Transaction: ...

    def get_pending_transaction(self, id_get: str) -> Transaction | None: ...

    def complete_transaction(
        self, transaction: Transaction, trans_id: str, external_payment_id: str | None
    ) -> None: ...
