"""Chat use case: one retrieval-augmented, streamed chat turn.

A turn runs in two phases so that every failure before the first byte can
still be reported as a structured error response:

1. ``prepare_turn`` takes the conversation lock, persists the user's message,
   hydrates the in-memory context and appends the context-augmented user turn.
2. ``stream_reply`` relays the model's fragments as ``StreamEvent``s and, on
   success only, records the complete assistant reply.

It has **no dependency on FastAPI** and can be driven from any transport.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from loguru import logger

from dadafarin.application.exceptions import UpstreamServiceError, ValidationFailedError
from dadafarin.domain.models import ChatMessage, Sender, StreamEvent
from dadafarin.domain.personas import Persona, system_prompt_for
from dadafarin.domain.protocols import IChatModel, IConversationStore, IVectorStore
from dadafarin.infrastructure.conversation_registry import (
    ConversationRegistry,
    RegistryEntry,
    hydrate_messages,
    registry_key,
)
from dadafarin.telemetry import span, start_span


def new_conversation_name() -> str:
    return f"c{int(time.time() * 1000)}"


def augment_user_message(message: str, context_chunks: list[str]) -> str:
    """The user turn as the model sees it: the question followed by retrieved context."""
    context = "\n".join(context_chunks)
    return f"name: User - question: {message}\n\nRelevant context:\n{context}"


# ---------------------------------------------------------------------------
# Prepared turn
# ---------------------------------------------------------------------------


@dataclass
class PreparedTurn:
    """A chat turn whose user message is persisted and whose context is assembled.

    Holds the conversation lock until ``release()`` is called.
    """

    user_id: int
    conversation_id: str
    key: str
    name: str
    entry: RegistryEntry
    lock: asyncio.Lock = field(repr=False)
    _released: bool = field(default=False, repr=False)

    def release(self) -> None:
        """Release the conversation lock. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        if self.lock.locked():
            self.lock.release()


# ---------------------------------------------------------------------------
# Use case
# ---------------------------------------------------------------------------


class ChatOrchestrator:
    """Coordinates storage, retrieval and the chat model for a conversation turn.

    Parameters
    ----------
    conversation_store:
        Durable, append-only conversation log.
    registry:
        In-memory conversation contexts (a cache of the log).
    vector_store:
        Similarity search over the document chunks.
    chat_model:
        Streaming chat-completion model.
    temperature:
        Sampling temperature passed with every completion request.
    retrieval_k:
        Maximum number of chunks spliced into a user turn.
    model_timeout:
        Seconds allowed between two consecutive fragments of the reply.
    """

    def __init__(
        self,
        conversation_store: IConversationStore,
        registry: ConversationRegistry,
        vector_store: IVectorStore,
        chat_model: IChatModel,
        temperature: float = 1.0,
        retrieval_k: int = 5,
        model_timeout: float = 60.0,
    ) -> None:
        self.conversation_store = conversation_store
        self.registry = registry
        self.vector_store = vector_store
        self.chat_model = chat_model
        self.temperature = temperature
        self.retrieval_k = retrieval_k
        self.model_timeout = model_timeout

    def _hydrate(self, user_id: int, conversation_id: str, persona: Persona):
        def hydrate() -> list[ChatMessage]:
            turns = self.conversation_store.list_ordered(user_id, conversation_id)
            return hydrate_messages(system_prompt_for(persona), turns)

        return hydrate

    # ------------------------------------------------------------------
    # Conversation lifecycle
    # ------------------------------------------------------------------

    async def init_conversation(
        self, user_id: int, conversation_id: str | None, persona: Persona = Persona.MULTI
    ) -> str:
        """Make sure the conversation's context is loaded; return its id."""
        conversation_id = conversation_id or str(uuid.uuid4())
        key = registry_key(user_id, conversation_id)
        async with self.registry.lock_for(key):
            self.registry.get_or_hydrate(key, self._hydrate(user_id, conversation_id, persona))
        return conversation_id

    async def delete_conversation(self, user_id: int, conversation_id: str) -> int:
        """Delete every turn of the conversation and drop its in-memory context."""
        key = registry_key(user_id, conversation_id)
        async with self.registry.lock_for(key):
            removed = self.conversation_store.delete_all(user_id, conversation_id)
            self.registry.evict(key)
        self.registry.discard_lock(key)
        return removed

    # ------------------------------------------------------------------
    # Chat turn
    # ------------------------------------------------------------------

    async def prepare_turn(
        self,
        user_id: int,
        conversation_id: str,
        message: str,
        persona: Persona = Persona.MULTI,
    ) -> PreparedTurn:
        """Persist the user message and build the model context for this turn.

        The returned turn holds the conversation lock; pass it to
        ``stream_reply`` (which releases it) or call ``release()``.

        Raises:
            ValidationFailedError: *message* or *conversation_id* is empty.
            UpstreamServiceError: the similarity search (embedding call) failed.
        """
        if not message or not message.strip() or not conversation_id:
            raise ValidationFailedError("Message and conversationId are required")

        key = registry_key(user_id, conversation_id)
        lock = self.registry.lock_for(key)
        await lock.acquire()
        try:
            name = self.conversation_store.get_name(user_id, conversation_id) or new_conversation_name()
            self.conversation_store.append(user_id, conversation_id, Sender.USER, message, name)

            entry, created = self.registry.get_or_hydrate(
                key, self._hydrate(user_id, conversation_id, persona)
            )
            if created:
                # The replay already contains the plain message persisted above.
                last = entry.messages[-1]
                if len(entry.messages) > 1 and last.role == "user" and last.content == message:
                    entry.messages.pop()

            try:
                with span("chat.retrieve", key=key, k=self.retrieval_k) as retrieve:
                    results = await self.vector_store.similarity_search(message, k=self.retrieval_k)
                    retrieve.set_attribute("context_chunks", len(results))
            except Exception as exc:
                logger.exception("Similarity search failed | key={}", key)
                raise UpstreamServiceError() from exc

            augmented = augment_user_message(message, [r.chunk.text for r in results])
            self.registry.append(key, entry, ChatMessage(role="user", content=augmented))
        except BaseException:
            lock.release()
            raise

        logger.info(
            "Chat turn prepared | key={} context_chunks={} messages={}",
            key,
            len(results),
            len(entry.messages),
        )
        return PreparedTurn(
            user_id=user_id,
            conversation_id=conversation_id,
            key=key,
            name=name,
            entry=entry,
            lock=lock,
        )

    async def stream_reply(self, turn: PreparedTurn) -> AsyncIterator[StreamEvent]:
        """Relay the model's reply for *turn*.

        Yields:
            One ``data`` event per fragment, then ``end`` after the complete
            reply has been recorded. On a model failure or timeout, an
            ``error`` event instead of ``end``; nothing is recorded.

        The conversation lock is released when the generator finishes, fails
        or is closed (client disconnect).
        """
        reply_span = start_span("chat.stream", key=turn.key, messages=len(turn.entry.messages))
        outcome = "cancelled"
        fragments: list[str] = []
        try:
            t0 = time.perf_counter()
            stream = aiter(self.chat_model.stream_complete(list(turn.entry.messages), self.temperature))
            try:
                while True:
                    try:
                        async with asyncio.timeout(self.model_timeout):
                            fragment = await anext(stream)
                    except StopAsyncIteration:
                        break
                    fragments.append(fragment)
                    yield StreamEvent.data(fragment)
            except Exception:
                logger.exception(
                    "Streaming failed | key={} fragments_sent={}", turn.key, len(fragments)
                )
                outcome = "failed"
                yield StreamEvent.error()
                return
            finally:
                aclose = getattr(stream, "aclose", None)
                if aclose is not None:
                    await aclose()

            reply = "".join(fragments)
            try:
                self.conversation_store.append(
                    turn.user_id, turn.conversation_id, Sender.ASSISTANT, reply, turn.name
                )
            except Exception:
                logger.exception("Failed to persist assistant reply | key={}", turn.key)
                outcome = "failed"
                yield StreamEvent.error()
                return
            self.registry.append(turn.key, turn.entry, ChatMessage(role="assistant", content=reply))

            logger.info(
                "Stream completed | key={} latency={}ms fragments={} chars={}",
                turn.key,
                int((time.perf_counter() - t0) * 1000),
                len(fragments),
                len(reply),
            )
            outcome = "completed"
            yield StreamEvent.end()
        finally:
            turn.release()
            reply_span.set_attribute("outcome", outcome)
            reply_span.set_attribute("fragments", len(fragments))
            reply_span.set_attribute("chars", sum(len(f) for f in fragments))
            reply_span.end()
