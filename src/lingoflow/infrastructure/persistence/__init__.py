# Infrastructure Persistence Package
from .memory import InMemoryStore
from .sqlite import SqliteStore

__all__ = ["InMemoryStore", "SqliteStore"]
