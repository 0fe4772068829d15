"""
Target backups taken before a destructive clone step.

A backup is a point-in-time copy of the rows of every planned table on the
target. It is taken before truncation or any write, so a failed clone can
be rolled back.

This module provides:
- TableBackup: Immutable description of a stored backup
- BackupManager: Abstract base class for backup storage
- TableSnapshotBackupManager: Stores rows in memory, or as JSON files in a
  directory when one is given
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from envclone.access.interface import Row, TableAccess
from envclone.access.transfer import fetch_all, with_timeout, write_rows
from envclone.environments.models import Environment
from envclone.exceptions import BackupError, TableAccessError
from envclone.observability import ATTR_OPERATION_ID, ATTR_TABLE_COUNT, Tracer, create_tracer
from envclone.operations import new_operation_id
from envclone.planner import TablePlanner
from envclone.serialization import json_dumps, json_loads

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableBackup:
    """
    A stored backup of an environment's tables.

    Attributes:
        backup_id: Unique identifier
        environment: Name of the environment that was backed up
        operation_id: Clone operation the backup belongs to
        tables: Row count per backed-up table, in insertion order
        created_at: When the backup was taken
    """

    backup_id: str
    environment: str
    operation_id: str
    tables: dict[str, int] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def total_rows(self) -> int:
        return sum(self.tables.values())

    def __str__(self) -> str:
        return f"Backup({self.backup_id}, {self.environment}, {len(self.tables)} tables, {self.total_rows} rows)"


class BackupManager(ABC):
    """
    Abstract base class for target backups.

    Implementations must provide:
    - create_backup: Copy the given tables and return a backup identifier
    - restore_backup: Put the copied rows back, returning rows restored
    """

    @abstractmethod
    async def create_backup(
        self,
        environment: Environment,
        access: TableAccess,
        tables: Sequence[str],
        operation_id: str,
    ) -> str:
        """
        Back up tables of an environment.

        Raises:
            BackupError: If any table could not be read
        """
        pass

    @abstractmethod
    async def restore_backup(self, backup_id: str, access: TableAccess) -> int:
        """
        Restore a backup: clear each table, then rewrite its saved rows.

        Raises:
            BackupError: If the backup is unknown or a table could not be restored
        """
        pass

    @abstractmethod
    async def get_backup(self, backup_id: str) -> TableBackup | None:
        pass


class TableSnapshotBackupManager(BackupManager):
    """
    Row-snapshot backups, kept in memory or written as JSON files.

    With a directory, each backup becomes ``<directory>/<backup_id>/<table>.json``
    plus a ``manifest.json``; without one, rows stay in this process.

    Args:
        directory: Optional directory for JSON backup files
        planner: Used to restore tables in dependency order
        page_size: Rows per fetch while reading tables
        batch_size: Rows per write while restoring
        timeout: Seconds allowed per data store call
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing
    """

    def __init__(
        self,
        directory: str | Path | None = None,
        *,
        planner: TablePlanner | None = None,
        page_size: int = 1000,
        batch_size: int = 500,
        timeout: float = 30.0,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._directory = Path(directory) if directory is not None else None
        self._planner = planner or TablePlanner()
        self._page_size = page_size
        self._batch_size = batch_size
        self._timeout = timeout
        self._backups: dict[str, TableBackup] = {}
        self._rows: dict[str, dict[str, list[Row]]] = {}
        self._lock = asyncio.Lock()

    async def create_backup(
        self,
        environment: Environment,
        access: TableAccess,
        tables: Sequence[str],
        operation_id: str,
    ) -> str:
        backup_id = new_operation_id("backup")
        with self._tracer.span(
            "envclone.backup.create",
            {ATTR_OPERATION_ID: operation_id, ATTR_TABLE_COUNT: len(tables)},
        ):
            saved: dict[str, list[Row]] = {}
            try:
                for table in self._planner.insertion_order(tables):
                    if not await with_timeout(access.exists(table), self._timeout, table, "exists"):
                        logger.debug("Skipping backup of %s: table does not exist", table)
                        continue
                    saved[table] = await fetch_all(
                        access, table, page_size=self._page_size, timeout=self._timeout
                    )
            except TableAccessError as e:
                raise BackupError(backup_id, str(e)) from e

            backup = TableBackup(
                backup_id=backup_id,
                environment=environment.name,
                operation_id=operation_id,
                tables={table: len(rows) for table, rows in saved.items()},
            )
            async with self._lock:
                if self._directory is not None:
                    await asyncio.to_thread(self._write_files, backup, saved)
                else:
                    self._rows[backup_id] = saved
                self._backups[backup_id] = backup

        logger.info(
            "Created backup %s of %s: %d tables, %d rows",
            backup_id,
            environment.name,
            len(backup.tables),
            backup.total_rows,
        )
        return backup_id

    async def restore_backup(self, backup_id: str, access: TableAccess) -> int:
        async with self._lock:
            backup = self._backups.get(backup_id)
            if backup is None and self._directory is not None:
                backup = await asyncio.to_thread(self._read_manifest, backup_id)
            if backup is None:
                raise BackupError(backup_id, "backup not found")
            saved = self._rows.get(backup_id)
            if saved is None:
                saved = await asyncio.to_thread(self._read_files, backup)

        restored = 0
        with self._tracer.span(
            "envclone.backup.restore",
            {ATTR_OPERATION_ID: backup.operation_id, ATTR_TABLE_COUNT: len(saved)},
        ):
            try:
                for table in self._planner.deletion_order(saved):
                    cleared = await with_timeout(access.delete_all(table), self._timeout, table, "delete_all")
                    if not cleared.ok:
                        raise BackupError(backup_id, f"could not clear {table}: {cleared.error}")
                for table in self._planner.insertion_order(saved):
                    summary = await write_rows(
                        access,
                        table,
                        saved[table],
                        self._planner.spec_for(table).conflict_key,
                        batch_size=self._batch_size,
                        timeout=self._timeout,
                    )
                    if not summary.ok:
                        raise BackupError(backup_id, f"could not restore {table}: {summary.errors[0]}")
                    restored += summary.written
            except TableAccessError as e:
                raise BackupError(backup_id, str(e)) from e

        logger.info("Restored backup %s: %d rows", backup_id, restored)
        return restored

    async def get_backup(self, backup_id: str) -> TableBackup | None:
        async with self._lock:
            backup = self._backups.get(backup_id)
            if backup is None and self._directory is not None:
                backup = await asyncio.to_thread(self._read_manifest, backup_id)
            return backup

    async def delete_backup(self, backup_id: str) -> bool:
        async with self._lock:
            found = self._backups.pop(backup_id, None) is not None
            self._rows.pop(backup_id, None)
            if self._directory is not None and await asyncio.to_thread(self._delete_files, backup_id):
                found = True
            return found

    # Blocking file helpers; callers run them in a worker thread.

    def _write_files(self, backup: TableBackup, saved: dict[str, list[Row]]) -> None:
        assert self._directory is not None
        path = self._directory / backup.backup_id
        path.mkdir(parents=True, exist_ok=True)
        for table, rows in saved.items():
            (path / f"{table}.json").write_text(json_dumps(rows), encoding="utf-8")
        manifest = {
            "backup_id": backup.backup_id,
            "environment": backup.environment,
            "operation_id": backup.operation_id,
            "tables": backup.tables,
            "created_at": backup.created_at,
        }
        (path / "manifest.json").write_text(json_dumps(manifest, indent=2), encoding="utf-8")

    def _read_manifest(self, backup_id: str) -> TableBackup | None:
        assert self._directory is not None
        manifest_path = self._directory / backup_id / "manifest.json"
        if not manifest_path.is_file():
            return None
        data = json_loads(manifest_path.read_text(encoding="utf-8"))
        return TableBackup(
            backup_id=data["backup_id"],
            environment=data["environment"],
            operation_id=data["operation_id"],
            tables=dict(data["tables"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )

    def _read_files(self, backup: TableBackup) -> dict[str, list[Row]]:
        if self._directory is None:
            raise BackupError(backup.backup_id, "backup rows are not available")
        path = self._directory / backup.backup_id
        saved = {}
        for table in backup.tables:
            file = path / f"{table}.json"
            if not file.is_file():
                raise BackupError(backup.backup_id, f"missing backup file for {table}")
            saved[table] = json_loads(file.read_text(encoding="utf-8"))
        return saved

    def _delete_files(self, backup_id: str) -> bool:
        assert self._directory is not None
        path = self._directory / backup_id
        if not path.is_dir():
            return False
        for file in path.iterdir():
            file.unlink()
        path.rmdir()
        return True


__all__ = [
    "BackupManager",
    "TableBackup",
    "TableSnapshotBackupManager",
]
