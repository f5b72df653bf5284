"""Database engine and session management."""
from .pool import Database, get_db

__all__ = ["Database", "get_db"]
