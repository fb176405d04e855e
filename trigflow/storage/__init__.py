"""
Storage backends for triggers, executions and run linkage.

Quick Start:
    # In-memory (for development/testing)
    >>> from trigflow.storage import InMemoryTriggerStorage, InMemoryExecutionStorage

    # SQLite (requires aiosqlite)
    >>> from trigflow.storage import SQLiteTriggerStorage
    >>> storage = SQLiteTriggerStorage("./triggers.db")
"""

from .base import ExecutionStorage, RunStorage, StorageError, TriggerStorage
from .memory import InMemoryExecutionStorage, InMemoryRunStorage, InMemoryTriggerStorage
from .sqlite import SQLiteExecutionStorage, SQLiteTriggerStorage

__all__ = [
    # Base classes and exceptions
    "ExecutionStorage",
    "RunStorage",
    "StorageError",
    "TriggerStorage",

    # Implementations
    "InMemoryExecutionStorage",
    "InMemoryRunStorage",
    "InMemoryTriggerStorage",
    "SQLiteExecutionStorage",
    "SQLiteTriggerStorage",
]
