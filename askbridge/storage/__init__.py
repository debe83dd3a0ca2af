"""
Conversation storage.
In-memory only; conversations do not survive a restart.
"""
from askbridge.storage.conversation_store import (
    ConversationSnapshot,
    InMemoryConversationStore,
)

__all__ = ["ConversationSnapshot", "InMemoryConversationStore"]
