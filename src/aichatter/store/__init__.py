"""Store collaborators for conversations, messages, and user settings."""

from .base import ConversationStore, InsertCallback, Subscription
from .json_file import JsonFileConversationStore
from .memory import InMemoryConversationStore

__all__ = [
    "ConversationStore",
    "InMemoryConversationStore",
    "InsertCallback",
    "JsonFileConversationStore",
    "Subscription",
]
