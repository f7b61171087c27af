"""In-process cache of live conversation contexts.

Each entry maps ``"<user_id>-<conversation_id>"`` to the message list sent to
the chat model (system prompt first). Entries are a cache of the durable
conversation log: they can be reaped or trimmed at any time and are rebuilt
from storage on the next access.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from dadafarin.domain.models import ChatMessage, Sender, Turn


def registry_key(user_id: int, conversation_id: str) -> str:
    return f"{user_id}-{conversation_id}"


@dataclass
class RegistryEntry:
    messages: list[ChatMessage]
    created_at: float  # last access, refreshed on every hit (sliding TTL)


def hydrate_messages(system_prompt: str, turns: list[Turn]) -> list[ChatMessage]:
    """System prompt followed by a replay of every persisted turn, in order."""
    messages = [ChatMessage(role="system", content=system_prompt)]
    for turn in turns:
        role = "user" if turn.sender == Sender.USER else "assistant"
        messages.append(ChatMessage(role=role, content=turn.message))
    return messages


class ConversationRegistry:
    """TTL- and size-bounded map of conversation contexts.

    Parameters
    ----------
    ttl_seconds:
        Idle time after which the reaper drops an entry.
    max_messages:
        Upper bound on an entry's message list; longer lists are cut back to
        the system prompt plus the most recent ``max_messages - 1`` messages.
    clock:
        Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = 2 * 60 * 60,
        max_messages: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_messages < 2:
            raise ValueError("max_messages must leave room for the system prompt and one message")
        self.ttl_seconds = ttl_seconds
        self.max_messages = max_messages
        self._clock = clock
        self._entries: dict[str, RegistryEntry] = {}
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._reaper: asyncio.Task | None = None

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def get(self, key: str) -> RegistryEntry | None:
        """Return the entry for *key* and refresh its timestamp, or None."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.created_at = self._clock()
            self.trim(entry, key)
        return entry

    def get_or_hydrate(
        self, key: str, hydrate: Callable[[], list[ChatMessage]]
    ) -> tuple[RegistryEntry, bool]:
        """Return ``(entry, created)``; *hydrate* is only called when *key* is absent."""
        entry = self.get(key)
        if entry is not None:
            return entry, False
        entry = RegistryEntry(messages=hydrate(), created_at=self._clock())
        self.trim(entry, key)
        self._entries[key] = entry
        logger.debug("Hydrated conversation {} with {} messages", key, len(entry.messages))
        return entry, True

    def append(self, key: str, entry: RegistryEntry, message: ChatMessage) -> None:
        entry.messages.append(message)
        self.trim(entry, key)

    def trim(self, entry: RegistryEntry, key: str = "") -> None:
        """Keep the leading system message plus the most recent ``max_messages - 1``."""
        if len(entry.messages) <= self.max_messages:
            return
        system_msg = entry.messages[0]
        entry.messages[:] = [system_msg, *entry.messages[-(self.max_messages - 1) :]]
        logger.info("Trimmed conversation {} to {} messages", key, self.max_messages)

    def evict(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def lock_for(self, key: str) -> asyncio.Lock:
        """Per-key lock that serializes chat turns on one conversation.

        Locks outlive entries, so a turn that races the reaper still excludes
        the next turn on the same key.
        """
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        return lock

    def discard_lock(self, key: str) -> None:
        """Forget the lock of *key* unless a turn currently holds it."""
        lock = self._key_locks.get(key)
        if lock is not None and not lock.locked():
            del self._key_locks[key]

    # ------------------------------------------------------------------
    # Reaping
    # ------------------------------------------------------------------

    def reap(self) -> int:
        """Drop every entry idle for longer than the TTL; return how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now - e.created_at > self.ttl_seconds]
        for key in expired:
            del self._entries[key]
            lock = self._key_locks.get(key)
            if lock is not None and not lock.locked():
                del self._key_locks[key]
        if expired:
            logger.info("Cleaned up {} old conversations from memory", len(expired))
        return len(expired)

    async def _reap_forever(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.reap()

    def start_reaper(self, interval_seconds: float) -> None:
        if self._reaper is None:
            self._reaper = asyncio.create_task(self._reap_forever(interval_seconds))

    async def stop_reaper(self) -> None:
        if self._reaper is not None:
            self._reaper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper
            self._reaper = None

    def clear(self) -> None:
        self._entries.clear()
        self._key_locks.clear()
