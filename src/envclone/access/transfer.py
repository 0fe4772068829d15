"""
Paginated reads and batched writes on top of TableAccess.

Writes go through an explicit two-step pipeline: ``try_upsert`` then
``try_insert``. Each step returns a tagged outcome (BatchOk or BatchErr)
consumed by the next, instead of nesting exception handlers. Every
collaborator call is bounded by a timeout; a timeout is that call's failure.

Usage:
    >>> async for page in iter_pages(source, "categories", page_size=1000, timeout=30):
    ...     summary = await write_rows(target, "categories", page, ("id",), batch_size=500, timeout=30)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from envclone.access.interface import Row, TableAccess
from envclone.exceptions import OperationTimeoutError, TableAccessError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BatchOk:
    """A batch the store accepted."""

    written: int
    method: str


@dataclass(frozen=True)
class BatchErr:
    """A batch the store rejected, with the store's message."""

    error: str
    method: str


BatchOutcome = BatchOk | BatchErr


@dataclass
class WriteSummary:
    """
    Accumulated outcome of writing a sequence of rows in batches.

    Attributes:
        written: Rows accepted by the store
        batches: Batches attempted
        failed_batches: Batches rejected by both upsert and insert
        inserted_batches: Batches that only succeeded through the insert fallback
        errors: One message per failed batch
    """

    written: int = 0
    batches: int = 0
    failed_batches: int = 0
    inserted_batches: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed_batches == 0

    def merge(self, other: WriteSummary) -> None:
        self.written += other.written
        self.batches += other.batches
        self.failed_batches += other.failed_batches
        self.inserted_batches += other.inserted_batches
        self.errors.extend(other.errors)


async def with_timeout(call: Awaitable[T], timeout: float, table: str, operation: str) -> T:
    """Await `call`, converting a timeout into OperationTimeoutError."""
    try:
        return await asyncio.wait_for(call, timeout)
    except TimeoutError:
        raise OperationTimeoutError(table, operation, timeout) from None


async def iter_pages(
    access: TableAccess,
    table: str,
    *,
    page_size: int,
    timeout: float,
) -> AsyncIterator[list[Row]]:
    """
    Yield a table's rows page by page.

    Requests ``[offset, offset + page_size)`` until a page comes back with
    fewer rows than requested.

    Raises:
        TableAccessError: If a fetch fails or times out
    """
    offset = 0
    while True:
        page = await with_timeout(access.fetch_page(table, offset, page_size), timeout, table, "fetch_page")
        if page:
            yield page
        if len(page) < page_size:
            return
        offset += len(page)


async def fetch_all(access: TableAccess, table: str, *, page_size: int, timeout: float) -> list[Row]:
    rows: list[Row] = []
    async for page in iter_pages(access, table, page_size=page_size, timeout=timeout):
        rows.extend(page)
    return rows


async def try_upsert(
    access: TableAccess,
    table: str,
    rows: Sequence[Row],
    conflict_key: Sequence[str],
    timeout: float,
) -> BatchOutcome:
    try:
        result = await with_timeout(
            access.upsert_batch(table, rows, conflict_key), timeout, table, "upsert_batch"
        )
    except TableAccessError as e:
        return BatchErr(str(e), "upsert")
    if result.ok:
        return BatchOk(result.written, "upsert")
    return BatchErr(result.error or "unknown error", "upsert")


async def try_insert(
    access: TableAccess,
    table: str,
    rows: Sequence[Row],
    timeout: float,
) -> BatchOutcome:
    try:
        result = await with_timeout(access.insert_batch(table, rows), timeout, table, "insert_batch")
    except TableAccessError as e:
        return BatchErr(str(e), "insert")
    if result.ok:
        return BatchOk(result.written, "insert")
    return BatchErr(result.error or "unknown error", "insert")


async def write_batch(
    access: TableAccess,
    table: str,
    rows: Sequence[Row],
    conflict_key: Sequence[str],
    timeout: float,
) -> BatchOutcome:
    """Upsert one batch, falling back to a plain insert if the upsert is rejected."""
    upserted = await try_upsert(access, table, rows, conflict_key, timeout)
    if isinstance(upserted, BatchOk):
        return upserted

    logger.warning(
        "Upsert of %d rows into %s failed, falling back to insert: %s",
        len(rows),
        table,
        upserted.error,
    )
    inserted = await try_insert(access, table, rows, timeout)
    if isinstance(inserted, BatchOk):
        return inserted
    return BatchErr(f"upsert failed: {upserted.error}; insert failed: {inserted.error}", "insert")


async def write_rows(
    access: TableAccess,
    table: str,
    rows: Sequence[Row],
    conflict_key: Sequence[str],
    *,
    batch_size: int,
    timeout: float,
) -> WriteSummary:
    """
    Write rows in sequential batches.

    A failed batch is not retried at row level: its rows are excluded from
    the written count and the next batch proceeds.
    """
    summary = WriteSummary()
    for start in range(0, len(rows), batch_size):
        batch = rows[start : start + batch_size]
        summary.batches += 1
        outcome = await write_batch(access, table, batch, conflict_key, timeout)
        if isinstance(outcome, BatchOk):
            summary.written += outcome.written
            if outcome.method == "insert":
                summary.inserted_batches += 1
        else:
            summary.failed_batches += 1
            summary.errors.append(outcome.error)
            logger.error(
                "Batch %d of %s (%d rows) was not written: %s",
                summary.batches,
                table,
                len(batch),
                outcome.error,
            )
    return summary


__all__ = [
    "BatchErr",
    "BatchOk",
    "BatchOutcome",
    "WriteSummary",
    "fetch_all",
    "iter_pages",
    "try_insert",
    "try_upsert",
    "with_timeout",
    "write_batch",
    "write_rows",
]
