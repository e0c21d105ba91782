from .store import ConversationStore, init_database

__all__ = [
    "ConversationStore",
    "init_database",
]
