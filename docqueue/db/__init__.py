"""
Database module.
Contains database connection, models, and repository implementations.
"""

from docqueue.db.connection import (
    close_db,
    create_engine,
    create_sessionmaker,
    get_engine,
    get_sessionmaker,
    init_db,
    session_scope,
)
from docqueue.db.models import Base, MessageDocument

__all__ = [
    "get_engine",
    "get_sessionmaker",
    "create_engine",
    "create_sessionmaker",
    "session_scope",
    "init_db",
    "close_db",
    "MessageDocument",
    "Base",
]
