"""
Table access interface and core data structures.

The cloners never talk to a database directly. Everything goes through a
TableAccess collaborator bound to one environment.

This module provides:
- WriteResult / DeleteResult: Outcomes of batched writes and deletes
- RoutineDefinition / TriggerDefinition: Database routine metadata
- TableAccess: Abstract base class for row-level access to one environment
- RoutineAccess: Abstract base class for functions and triggers
- ConnectionFactory: Protocol producing a TableAccess for an environment
- RealtimeProbe: Protocol for realtime subscription smoke checks
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from envclone.environments.models import Environment

Row = dict[str, Any]


@dataclass(frozen=True)
class WriteResult:
    """
    Result of a batched upsert or insert.

    Attributes:
        written: Number of rows the store accepted
        error: Store error message when the batch failed
    """

    written: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class DeleteResult:
    """
    Result of clearing a table.

    Attributes:
        deleted: Number of rows removed (0 when there was nothing to delete)
        error: Store error message when the delete failed
    """

    deleted: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RoutineDefinition:
    """
    A database function as cloned metadata.

    Attributes:
        schema: Schema owning the function
        name: Function name
        definition: Full ``CREATE OR REPLACE FUNCTION`` statement
    """

    schema: str
    name: str
    definition: str

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}"


@dataclass(frozen=True)
class TriggerDefinition:
    """
    A table trigger as cloned metadata.

    Attributes:
        name: Trigger name
        table: Table the trigger fires on
        function: Qualified name of the function it executes
        definition: Full ``CREATE TRIGGER`` statement
        enabled: Whether the trigger is enabled
    """

    name: str
    table: str
    function: str
    definition: str
    enabled: bool = True


class TableAccess(ABC):
    """
    Abstract base class for row-level access to one environment.

    Table names may be schema-qualified (``audit.audit_logs``). Every
    method may raise TableAccessError on connectivity problems.
    """

    @abstractmethod
    async def exists(self, table: str) -> bool:
        """Return True if the table exists."""
        pass

    @abstractmethod
    async def columns(self, table: str) -> set[str]:
        """
        Return the table's column names.

        An empty set means the column set could not be determined, in which
        case callers must not drop any columns.
        """
        pass

    @abstractmethod
    async def fetch_page(self, table: str, offset: int, limit: int) -> list[Row]:
        """Return rows ``[offset, offset + limit)`` in a stable order."""
        pass

    @abstractmethod
    async def upsert_batch(
        self,
        table: str,
        rows: Sequence[Row],
        conflict_key: Sequence[str],
    ) -> WriteResult:
        """Insert rows, updating existing rows that collide on `conflict_key`."""
        pass

    @abstractmethod
    async def insert_batch(self, table: str, rows: Sequence[Row]) -> WriteResult:
        """Plain insert, used as the fallback when an upsert fails."""
        pass

    @abstractmethod
    async def delete_all(self, table: str) -> DeleteResult:
        """Remove every row. A missing or empty table is not an error."""
        pass

    @abstractmethod
    async def count(self, table: str) -> int:
        """Return the number of rows in the table."""
        pass

    async def close(self) -> None:  # noqa: B027
        """Release any resources held by this access object."""
        pass


class RoutineAccess(ABC):
    """Abstract base class for cloning database functions and triggers."""

    @abstractmethod
    async def list_functions(self, schema: str) -> list[RoutineDefinition]:
        pass

    @abstractmethod
    async def list_triggers(self, schema: str) -> list[TriggerDefinition]:
        """Triggers whose function lives in `schema`."""
        pass

    @abstractmethod
    async def apply_function(self, routine: RoutineDefinition) -> None:
        pass

    @abstractmethod
    async def apply_trigger(self, trigger: TriggerDefinition) -> None:
        pass

    @abstractmethod
    async def check_trigger(self, trigger: TriggerDefinition) -> bool:
        """Return True if the trigger is installed and will fire."""
        pass


@runtime_checkable
class ConnectionFactory(Protocol):
    """Produces TableAccess objects for environments."""

    async def connect(self, environment: Environment) -> TableAccess:
        ...


@runtime_checkable
class RealtimeProbe(Protocol):
    """Checks that a realtime subscription can be established on a table."""

    async def can_subscribe(self, environment: Environment, table: str) -> bool:
        ...


__all__ = [
    "Row",
    "WriteResult",
    "DeleteResult",
    "RoutineDefinition",
    "TriggerDefinition",
    "TableAccess",
    "RoutineAccess",
    "ConnectionFactory",
    "RealtimeProbe",
]
