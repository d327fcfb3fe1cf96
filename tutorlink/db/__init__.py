# Database Connection and Base Models

from tutorlink.db.base import Base, JSONDocument
from tutorlink.db.session import get_async_engine, get_async_session, get_async_session_maker

__all__ = [
    "Base",
    "JSONDocument",
    "get_async_engine",
    "get_async_session",
    "get_async_session_maker",
]
