"""
Local persistence for the per-user key-value store.
"""
from hrbot.database.models import Base, StoredValue
from hrbot.database.session import (
    engine,
    async_session_maker,
    make_engine,
    make_session_factory,
    init_db,
    close_db,
    get_session,
)

__all__ = [
    "Base",
    "StoredValue",
    "engine",
    "async_session_maker",
    "make_engine",
    "make_session_factory",
    "init_db",
    "close_db",
    "get_session",
]
