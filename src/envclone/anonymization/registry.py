"""
Registry mapping table names to anonymization strategies.

New tables register a strategy instead of extending a switch statement.
Tables without a registered strategy pass through unchanged.

Example:
    >>> registry = AnonymizationRegistry()
    >>> registry.register("profiles", ProfileAnonymizer("test"))
    >>> clean = registry.anonymize("profiles", rows, protected_columns={"id"})
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping, Sequence

from envclone.access.interface import Row
from envclone.anonymization.base import AnonymizationStrategy, IdentityStrategy
from envclone.exceptions import AnonymizationError

logger = logging.getLogger(__name__)

_IDENTITY = IdentityStrategy()


class AnonymizationRegistry:
    """
    Table name -> strategy mapping.

    Args:
        strategies: Initial registrations
    """

    def __init__(self, strategies: Mapping[str, AnonymizationStrategy] | None = None) -> None:
        self._strategies: dict[str, AnonymizationStrategy] = dict(strategies or {})

    def register(self, table: str, strategy: AnonymizationStrategy) -> None:
        if table in self._strategies:
            logger.debug("Replacing anonymization strategy for %s", table)
        self._strategies[table] = strategy

    def unregister(self, table: str) -> None:
        self._strategies.pop(table, None)

    def get(self, table: str) -> AnonymizationStrategy:
        return self._strategies.get(table, _IDENTITY)

    def __contains__(self, table: object) -> bool:
        return table in self._strategies

    @property
    def tables(self) -> list[str]:
        return sorted(self._strategies)

    def anonymize(
        self,
        table: str,
        rows: Sequence[Row],
        protected_columns: Collection[str] = (),
    ) -> list[Row]:
        """
        Apply the table's strategy.

        Args:
            table: Table name
            rows: Raw rows
            protected_columns: Key columns that must come out unchanged

        Raises:
            AnonymizationError: If the strategy changed a protected column
        """
        result = self.get(table).anonymize(rows)
        if protected_columns and len(result) == len(rows):
            for before, after in zip(rows, result, strict=True):
                for column in protected_columns:
                    if column in before and after.get(column) != before[column]:
                        raise AnonymizationError(table, column)
        return result


__all__ = ["AnonymizationRegistry"]
