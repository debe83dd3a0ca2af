"""
In-memory conversation store.

Keyed by conversation id; each entry holds the ordered message history and
the time it was last touched. Nothing survives a restart.

Concurrency: every method runs to completion without awaiting, so each call
is atomic under asyncio. Callers that getOrCreate, await a backend, then
append/trim are NOT serialized per conversation: two in-flight requests on
the same id both read the same history and both append afterwards
(last writer wins on ordering). Accepted; no per-conversation lock is held.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable
from uuid import uuid4

from askbridge.errors import UnknownConversationError
from askbridge.models import ChatMessage

logger = logging.getLogger(__name__)


@dataclass
class ConversationEntry:
    history: list[ChatMessage] = field(default_factory=list)
    updated_at: float = 0.0


@dataclass(frozen=True)
class ConversationSnapshot:
    """What getOrCreate hands out: the id plus a private copy of history."""
    id: str
    history: list[ChatMessage]


class InMemoryConversationStore:
    """Process-local conversation history with TTL eviction."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: dict[str, ConversationEntry] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._entries

    def _require(self, conversation_id: str) -> ConversationEntry:
        entry = self._entries.get(conversation_id)
        if entry is None:
            raise UnknownConversationError(conversation_id)
        return entry

    async def get_or_create(self, conversation_id: str | None = None) -> ConversationSnapshot:
        """
        Return the conversation for `conversation_id`, creating it if needed.
        Blank/missing id → fresh uuid. Unknown id → new empty entry under it.
        """
        now = self._clock()
        conv_id = (conversation_id or "").strip() or uuid4().hex

        entry = self._entries.get(conv_id)
        if entry is None:
            entry = ConversationEntry(updated_at=now)
            self._entries[conv_id] = entry
            logger.debug("Created conversation %s", conv_id)
        else:
            entry.updated_at = now

        return ConversationSnapshot(id=conv_id, history=list(entry.history))

    async def append(self, conversation_id: str, *messages: ChatMessage) -> None:
        entry = self._require(conversation_id)
        if messages:
            entry.history = [*entry.history, *messages]
        entry.updated_at = self._clock()

    async def trim(self, conversation_id: str, max_messages: int) -> None:
        """Keep only the newest `max_messages` (clamped to >= 0)."""
        entry = self._require(conversation_id)
        limit = max(0, int(max_messages))
        if len(entry.history) > limit:
            entry.history = entry.history[len(entry.history) - limit:]
        entry.updated_at = self._clock()

    async def touch(self, conversation_id: str) -> None:
        self._require(conversation_id).updated_at = self._clock()

    async def purge_expired(self, ttl_seconds: float) -> int:
        """
        Delete entries idle longer than `ttl_seconds`.

        The single most recently updated entry always survives, however old,
        so a quiet server never loses its only live conversation.
        Returns the number of entries deleted.
        """
        if ttl_seconds <= 0 or not self._entries:
            return 0

        now = self._clock()
        # max() returns the first of equal keys, so ties keep the oldest-inserted.
        newest_id = max(self._entries, key=lambda cid: self._entries[cid].updated_at)

        expired = [
            cid for cid, entry in self._entries.items()
            if cid != newest_id and now - entry.updated_at > ttl_seconds
        ]
        for cid in expired:
            del self._entries[cid]

        if expired:
            logger.info("Purged %d expired conversation(s)", len(expired))
        return len(expired)
