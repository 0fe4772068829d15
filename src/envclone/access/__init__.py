"""
Table access collaborators.

The cloners only depend on the abstract interfaces; pick an implementation
with a ConnectionFactory:

- InMemoryConnectionFactory: pre-built in-memory stores (tests, rehearsals)
- SQLAlchemyConnectionFactory: one async engine per environment
"""

from envclone.access.in_memory import (
    AccessCall,
    InMemoryConnectionFactory,
    InMemoryRealtimeProbe,
    InMemoryTableAccess,
)
from envclone.access.interface import (
    ConnectionFactory,
    DeleteResult,
    RealtimeProbe,
    RoutineAccess,
    RoutineDefinition,
    Row,
    TableAccess,
    TriggerDefinition,
    WriteResult,
)
from envclone.access.sql import (
    SQLAlchemyConnectionFactory,
    SQLAlchemyTableAccess,
    normalize_database_url,
)
from envclone.access.transfer import (
    BatchErr,
    BatchOk,
    WriteSummary,
    fetch_all,
    iter_pages,
    with_timeout,
    write_batch,
    write_rows,
)

__all__ = [
    "AccessCall",
    "BatchErr",
    "BatchOk",
    "ConnectionFactory",
    "DeleteResult",
    "InMemoryConnectionFactory",
    "InMemoryRealtimeProbe",
    "InMemoryTableAccess",
    "RealtimeProbe",
    "RoutineAccess",
    "RoutineDefinition",
    "Row",
    "SQLAlchemyConnectionFactory",
    "SQLAlchemyTableAccess",
    "TableAccess",
    "TriggerDefinition",
    "WriteResult",
    "WriteSummary",
    "fetch_all",
    "iter_pages",
    "normalize_database_url",
    "with_timeout",
    "write_batch",
    "write_rows",
]
