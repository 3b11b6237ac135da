"""Database utilities for the CodeIt sync engine."""

from .session import (
    dispose_engine,
    get_engine,
    init_db,
    session_scope,
)

__all__ = [
    "dispose_engine",
    "get_engine",
    "init_db",
    "session_scope",
]
