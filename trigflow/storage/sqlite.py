"""
SQLite trigger and execution storage.

Lightweight embedded persistence via aiosqlite, for single-process
deployments and local development.

Usage:
    >>> from trigflow.storage.sqlite import SQLiteTriggerStorage, SQLiteExecutionStorage
    >>>
    >>> triggers = SQLiteTriggerStorage("./data/triggers.db")
    >>> executions = SQLiteExecutionStorage("./data/triggers.db")
    >>>
    >>> # In-memory (for testing)
    >>> triggers = SQLiteTriggerStorage(":memory:")
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

try:
    import aiosqlite

    AIOSQLITE_AVAILABLE = True
except ImportError:  # pragma: no cover
    AIOSQLITE_AVAILABLE = False
    aiosqlite = None  # type: ignore[assignment]

from trigflow.core.exceptions import MissingDependencyError
from trigflow.storage.base import ExecutionStorage, StorageError, TriggerStorage
from trigflow.triggers.models import Execution, Trigger

if TYPE_CHECKING:
    from trigflow.types import TriggerType

logger = logging.getLogger(__name__)


class _SQLiteBackend:
    """Shared connection and schema handling."""

    _SCHEMA = ""

    def __init__(self, db_path: str = ":memory:"):
        if not AIOSQLITE_AVAILABLE:  # pragma: no cover
            raise MissingDependencyError("aiosqlite", "SQLite storage")

        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._initialized = False

    async def initialize(self) -> None:
        """Create connection and schema."""
        await self._get_connection()

    async def _get_connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = aiosqlite.Row

        if not self._initialized:
            await self._conn.executescript(self._SCHEMA)
            await self._conn.commit()
            self._initialized = True

        return self._conn

    async def __aenter__(self):
        await self._get_connection()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            self._initialized = False


class SQLiteTriggerStorage(_SQLiteBackend, TriggerStorage):
    """SQLite-based trigger storage."""

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS process_triggers (
            id TEXT PRIMARY KEY,
            workspace_id TEXT NOT NULL,
            process_definition_id TEXT NOT NULL,
            trigger_type TEXT NOT NULL,
            conditions TEXT NOT NULL,
            variable_mappings TEXT NOT NULL,
            is_active INTEGER NOT NULL,
            name TEXT,
            description TEXT,
            created_by_id TEXT,
            last_triggered_at TEXT,
            trigger_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_triggers_lookup
            ON process_triggers(workspace_id, trigger_type, is_active);
        CREATE INDEX IF NOT EXISTS idx_triggers_definition
            ON process_triggers(process_definition_id);
    """

    _COLUMNS = (
        "id",
        "workspace_id",
        "process_definition_id",
        "trigger_type",
        "conditions",
        "variable_mappings",
        "is_active",
        "name",
        "description",
        "created_by_id",
        "last_triggered_at",
        "trigger_count",
        "created_at",
        "updated_at",
    )

    async def insert(self, trigger: Trigger) -> Trigger:
        conn = await self._get_connection()
        placeholders = ", ".join("?" for _ in self._COLUMNS)
        await conn.execute(
            f"INSERT INTO process_triggers ({', '.join(self._COLUMNS)}) VALUES ({placeholders})",
            self._to_row(trigger),
        )
        await conn.commit()
        return trigger

    async def get(self, trigger_id: str) -> Trigger | None:
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM process_triggers WHERE id = ?", (trigger_id,))
        row = await cursor.fetchone()
        return self._from_row(row) if row else None

    async def save(self, trigger: Trigger) -> Trigger:
        conn = await self._get_connection()
        assignments = ", ".join(f"{col} = ?" for col in self._COLUMNS[1:])
        values = self._to_row(trigger)
        cursor = await conn.execute(
            f"UPDATE process_triggers SET {assignments} WHERE id = ?",
            (*values[1:], trigger.id),
        )
        await conn.commit()
        if cursor.rowcount == 0:
            msg = f"Trigger {trigger.id} not found"
            raise StorageError(msg)
        return trigger

    async def delete(self, trigger_id: str) -> bool:
        conn = await self._get_connection()
        cursor = await conn.execute("DELETE FROM process_triggers WHERE id = ?", (trigger_id,))
        await conn.commit()
        return cursor.rowcount > 0

    async def find(
        self,
        workspace_id: str | None = None,
        trigger_type: TriggerType | None = None,
        is_active: bool | None = None,
        process_definition_id: str | None = None,
    ) -> list[Trigger]:
        conn = await self._get_connection()

        clauses: list[str] = []
        params: list[Any] = []
        if workspace_id is not None:
            clauses.append("workspace_id = ?")
            params.append(workspace_id)
        if trigger_type is not None:
            clauses.append("trigger_type = ?")
            params.append(trigger_type.value)
        if is_active is not None:
            clauses.append("is_active = ?")
            params.append(1 if is_active else 0)
        if process_definition_id is not None:
            clauses.append("process_definition_id = ?")
            params.append(process_definition_id)

        query = "SELECT * FROM process_triggers"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC"

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [self._from_row(row) for row in rows]

    async def record_fire(self, trigger_id: str, fired_at: datetime) -> None:
        conn = await self._get_connection()
        await conn.execute(
            """
            UPDATE process_triggers
            SET trigger_count = trigger_count + 1, last_triggered_at = ?
            WHERE id = ?
            """,
            (fired_at.isoformat(), trigger_id),
        )
        await conn.commit()

    def _to_row(self, trigger: Trigger) -> tuple:
        data = trigger.to_dict()
        data["conditions"] = json.dumps(data["conditions"])
        data["variable_mappings"] = json.dumps(data["variable_mappings"])
        data["is_active"] = 1 if data["is_active"] else 0
        return tuple(data[col] for col in self._COLUMNS)

    def _from_row(self, row: aiosqlite.Row) -> Trigger:
        data = dict(row)
        data["conditions"] = json.loads(data["conditions"])
        data["variable_mappings"] = json.loads(data["variable_mappings"])
        data["is_active"] = bool(data["is_active"])
        return Trigger.from_dict(data)


class SQLiteExecutionStorage(_SQLiteBackend, ExecutionStorage):
    """SQLite-based execution log."""

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS trigger_executions (
            id TEXT PRIMARY KEY,
            trigger_id TEXT NOT NULL,
            trigger_context TEXT NOT NULL,
            status TEXT NOT NULL,
            process_instance_id TEXT,
            error_message TEXT,
            executed_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_executions_trigger
            ON trigger_executions(trigger_id, executed_at);
    """

    async def append(self, execution: Execution) -> Execution:
        conn = await self._get_connection()
        data = execution.to_dict()
        await conn.execute(
            """
            INSERT INTO trigger_executions
                (id, trigger_id, trigger_context, status, process_instance_id, error_message, executed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                data["id"],
                data["trigger_id"],
                json.dumps(data["trigger_context"], default=str),
                data["status"],
                data["process_instance_id"],
                data["error_message"],
                data["executed_at"],
            ),
        )
        await conn.commit()
        return execution

    async def list_for_trigger(self, trigger_id: str, limit: int = 50) -> list[Execution]:
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT * FROM trigger_executions WHERE trigger_id = ? ORDER BY executed_at DESC LIMIT ?",
            (trigger_id, limit),
        )
        return [self._from_row(row) for row in await cursor.fetchall()]

    async def list_recent(self, trigger_ids: list[str], limit: int = 100) -> list[Execution]:
        if not trigger_ids:
            return []
        conn = await self._get_connection()
        placeholders = ", ".join("?" for _ in trigger_ids)
        cursor = await conn.execute(
            f"SELECT * FROM trigger_executions WHERE trigger_id IN ({placeholders}) "
            "ORDER BY executed_at DESC LIMIT ?",
            (*trigger_ids, limit),
        )
        return [self._from_row(row) for row in await cursor.fetchall()]

    def _from_row(self, row: aiosqlite.Row) -> Execution:
        data = dict(row)
        data["trigger_context"] = json.loads(data["trigger_context"])
        return Execution.from_dict(data)
