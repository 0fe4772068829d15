"""
Dependency-ordered table planner.

Tables are cloned so that every table is emitted only after all the tables
it references by foreign key. Each table's conflict key (used for upserts)
is declared alongside its position in the plan, so write behavior never
depends on guessing a unique column.

The order is computed once, when the planner is built, with a topological
sort over the declared foreign keys. Ties are broken by declaration order,
so the result is deterministic.

Example:
    >>> planner = TablePlanner()
    >>> planner.insertion_order(["transactions", "categories"])
    ['categories', 'transactions']
    >>> planner.deletion_order(["transactions", "categories"])
    ['transactions', 'categories']
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from graphlib import CycleError, TopologicalSorter

from envclone.exceptions import PlannerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableSpec:
    """
    Declared shape of one clonable table.

    Attributes:
        name: Table name, optionally schema-qualified (``audit.audit_logs``)
        conflict_key: Columns used as the upsert conflict target
        foreign_keys: Mapping of column name to referenced table name
        sensitive: Table holds personal data and is skipped by ``exclude_sensitive``
        group: Optional table group (e.g. ``bill_notifications``); ungrouped
            tables belong to the core data set
    """

    name: str
    conflict_key: tuple[str, ...] = ("id",)
    foreign_keys: dict[str, str] = field(default_factory=dict)
    sensitive: bool = False
    group: str | None = None

    @property
    def references(self) -> frozenset[str]:
        """Tables this table depends on, excluding self references."""
        return frozenset(t for t in self.foreign_keys.values() if t != self.name)

    @property
    def key_columns(self) -> frozenset[str]:
        """Primary/conflict key and foreign key columns, which anonymization must not touch."""
        return frozenset(self.conflict_key) | frozenset(self.foreign_keys)


@dataclass(frozen=True)
class TablePlan:
    """
    Result of planning a table set.

    Attributes:
        tables: Tables in insertion order; unknown tables come last
        unknown: Requested tables with no declared spec
    """

    tables: list[str]
    unknown: list[str] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [
            f"Table {name} has no declared dependencies; cloning it after known tables"
            for name in self.unknown
        ]


DEFAULT_TABLE_SPECS: tuple[TableSpec, ...] = (
    # Reference tables
    TableSpec("currencies"),
    TableSpec("categories"),
    TableSpec("zone_areas"),
    TableSpec("internet_connection_types"),
    TableSpec("payment_methods"),
    TableSpec("loft_owners"),
    TableSpec("teams"),
    # Entities
    TableSpec("profiles", sensitive=True),
    TableSpec(
        "lofts",
        foreign_keys={
            "owner_id": "loft_owners",
            "zone_area_id": "zone_areas",
            "internet_connection_type_id": "internet_connection_types",
        },
    ),
    TableSpec("team_members", foreign_keys={"team_id": "teams", "user_id": "profiles"}),
    TableSpec(
        "tasks",
        foreign_keys={"loft_id": "lofts", "assigned_to": "profiles", "team_id": "teams"},
    ),
    TableSpec(
        "transactions",
        foreign_keys={
            "loft_id": "lofts",
            "owner_id": "loft_owners",
            "category_id": "categories",
            "currency_id": "currencies",
            "payment_method_id": "payment_methods",
        },
    ),
    TableSpec(
        "transaction_category_references",
        foreign_keys={"category_id": "categories"},
        group="transaction_references",
    ),
    TableSpec(
        "transaction_reference_amounts",
        foreign_keys={"category_id": "categories"},
        group="transaction_references",
    ),
    TableSpec("settings", conflict_key=("key",)),
    # Bill notifications
    TableSpec("bill_frequencies", foreign_keys={"loft_id": "lofts"}, group="bill_notifications"),
    TableSpec(
        "bill_notifications",
        foreign_keys={"loft_id": "lofts", "user_id": "profiles"},
        group="bill_notifications",
    ),
    # Activity
    TableSpec("notifications", foreign_keys={"user_id": "profiles"}, sensitive=True),
    TableSpec("user_sessions", foreign_keys={"user_id": "profiles"}, sensitive=True),
    # Conversations
    TableSpec("conversations", group="conversations"),
    TableSpec(
        "conversation_participants",
        foreign_keys={"conversation_id": "conversations", "user_id": "profiles"},
        group="conversations",
    ),
    TableSpec(
        "messages",
        foreign_keys={"conversation_id": "conversations", "sender_id": "profiles"},
        sensitive=True,
        group="conversations",
    ),
    # Reservations
    TableSpec(
        "reservations",
        foreign_keys={"loft_id": "lofts", "guest_id": "profiles"},
        group="reservations",
    ),
    TableSpec(
        "loft_availability",
        conflict_key=("loft_id", "date"),
        foreign_keys={"loft_id": "lofts"},
        group="reservations",
    ),
    TableSpec("pricing_rules", foreign_keys={"loft_id": "lofts"}, group="reservations"),
    TableSpec(
        "reservation_payments",
        foreign_keys={"reservation_id": "reservations"},
        group="reservations",
    ),
    # Audit
    TableSpec("audit.audit_logs", foreign_keys={"user_id": "profiles"}, sensitive=True, group="audit"),
)

# Groups included in a default data clone alongside the ungrouped core tables
DEFAULT_DATA_GROUPS: tuple[str, ...] = ("transaction_references",)


class TablePlanner:
    """
    Orders tables by foreign key dependencies.

    Args:
        specs: Table specifications (defaults to DEFAULT_TABLE_SPECS)

    Raises:
        PlannerError: If the declared foreign keys form a cycle
    """

    def __init__(self, specs: Iterable[TableSpec] = DEFAULT_TABLE_SPECS) -> None:
        self._specs: dict[str, TableSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise PlannerError(f"Duplicate table spec: {spec.name}", [spec.name])
            self._specs[spec.name] = spec
        self._order = self._compute_order()
        self._position = {name: i for i, name in enumerate(self._order)}

    def _compute_order(self) -> list[str]:
        declared = {name: i for i, name in enumerate(self._specs)}
        sorter: TopologicalSorter[str] = TopologicalSorter()
        for name, spec in self._specs.items():
            # References to undeclared tables impose no ordering
            sorter.add(name, *(ref for ref in spec.references if ref in self._specs))

        try:
            sorter.prepare()
        except CycleError as e:
            cycle = list(e.args[1]) if len(e.args) > 1 else []
            raise PlannerError(f"Dependency cycle between tables: {' -> '.join(cycle)}", cycle) from e

        order: list[str] = []
        while sorter.is_active():
            ready = sorted(sorter.get_ready(), key=declared.__getitem__)
            for name in ready:
                order.append(name)
                sorter.done(name)
        return order

    @property
    def specs(self) -> dict[str, TableSpec]:
        return dict(self._specs)

    def spec_for(self, table: str) -> TableSpec:
        """Spec for a table; unknown tables get a dependency-free ``id``-keyed spec."""
        return self._specs.get(table) or TableSpec(table)

    def is_known(self, table: str) -> bool:
        return table in self._specs

    def dependencies(self, table: str) -> frozenset[str]:
        return self.spec_for(table).references

    def tables_in_group(self, group: str | None) -> list[str]:
        return [name for name in self._order if self._specs[name].group == group]

    def default_tables(
        self,
        groups: Sequence[str] = DEFAULT_DATA_GROUPS,
        *,
        exclude_sensitive: bool = False,
    ) -> list[str]:
        """Core tables plus the named groups, in insertion order."""
        wanted = {None, *groups}
        return [
            name
            for name in self._order
            if self._specs[name].group in wanted
            and not (exclude_sensitive and self._specs[name].sensitive)
        ]

    def plan(self, tables: Iterable[str] | None = None) -> TablePlan:
        """
        Order a requested table set.

        Args:
            tables: Tables to order, or None for the default data set

        Returns:
            TablePlan with known tables in dependency order followed by
            unknown tables in request order
        """
        if tables is None:
            return TablePlan(self.default_tables())

        requested = list(dict.fromkeys(tables))
        known = sorted((t for t in requested if t in self._position), key=self._position.__getitem__)
        unknown = [t for t in requested if t not in self._position]
        for name in unknown:
            logger.warning("Table %s is unknown to the planner; appending it at the end", name)
        return TablePlan(known + unknown, unknown)

    def insertion_order(self, tables: Iterable[str] | None = None) -> list[str]:
        return self.plan(tables).tables

    def deletion_order(self, tables: Iterable[str] | None = None) -> list[str]:
        """Reverse insertion order, for clearing a target before a fresh load."""
        return list(reversed(self.plan(tables).tables))


__all__ = [
    "TableSpec",
    "TablePlan",
    "TablePlanner",
    "DEFAULT_TABLE_SPECS",
    "DEFAULT_DATA_GROUPS",
]
