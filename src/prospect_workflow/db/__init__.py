from .base import Base
from .session import DEFAULT_SQLITE_URL, Database
from .tables import ClientRecordRow, ConversationStateRow

__all__ = [
    "Base",
    "ClientRecordRow",
    "ConversationStateRow",
    "DEFAULT_SQLITE_URL",
    "Database",
]
