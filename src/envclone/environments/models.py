"""
Environment descriptor models.

An Environment is a static record describing a named data environment:
its identity, how to connect to it, and whether it may be written to.
Environments are constructed once per operation from configuration
and are never persisted by this library.

Example:
    >>> env = Environment(
    ...     id="test",
    ...     name="test",
    ...     type=EnvironmentType.TEST,
    ...     connection=ConnectionDescriptor(url="sqlite+aiosqlite:///test.db"),
    ... )
    >>> env.is_production
    False
    >>> env.label
    'test'
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator


class EnvironmentType(str, Enum):
    """
    Kind of data environment.

    Values:
        PRODUCTION: Live data, never a write target
        TEST: Automated and manual testing
        DEVELOPMENT: Developer sandboxes
        TRAINING: Staff training and demos
    """

    PRODUCTION = "production"
    TEST = "test"
    DEVELOPMENT = "development"
    TRAINING = "training"


class EnvironmentStatus(str, Enum):
    """
    Operational status of an environment.

    Values:
        READ_ONLY: Environment only serves reads
        ACTIVE: Environment accepts reads and writes
    """

    READ_ONLY = "read_only"
    ACTIVE = "active"


class ConnectionDescriptor(BaseModel):
    """
    How to reach an environment's data store.

    Attributes:
        url: Database URL (SQLAlchemy URL or REST endpoint)
        anon_key: Anonymous/read credential (optional)
        service_key: Service/privileged credential (optional)
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=1, description="Database or API URL")
    anon_key: SecretStr | None = Field(default=None, description="Read-level credential")
    service_key: SecretStr | None = Field(default=None, description="Privileged credential")

    @property
    def has_service_credentials(self) -> bool:
        return self.service_key is not None and bool(self.service_key.get_secret_value())


class Environment(BaseModel):
    """
    Descriptor for a named data environment.

    The production/write invariant (a production environment never allows
    writes) is checked by ProductionSafetyGuard at the start of every
    operation rather than at construction, so that a misconfigured
    descriptor surfaces as a safety violation reported to the operator.

    Attributes:
        id: Stable identifier
        name: Human readable name, also the source of `label`
        type: Kind of environment
        connection: Connection descriptor
        is_production: Production flag (derived from `type` when omitted)
        allow_writes: Whether writes are permitted
        status: Operational status
        created_at: When the descriptor was created
        updated_at: When the descriptor was last changed
        description: Free text
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    type: EnvironmentType
    connection: ConnectionDescriptor
    is_production: bool = False
    allow_writes: bool = True
    status: EnvironmentStatus = EnvironmentStatus.ACTIVE
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    description: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_production_flag(cls, data: Any) -> Any:
        """Default is_production from type when the caller did not set it."""
        if isinstance(data, dict) and "is_production" not in data:
            env_type = data.get("type")
            data = dict(data)
            data["is_production"] = env_type in (EnvironmentType.PRODUCTION, "production")
        return data

    @property
    def label(self) -> str:
        """Slug of the environment name, used in synthetic data (e.g. ``user_x@test.local``)."""
        slug = re.sub(r"[^a-z0-9]+", "-", self.name.lower()).strip("-")
        return slug or self.type.value

    @property
    def is_production_like(self) -> bool:
        """True when either the type or the explicit flag marks production."""
        return self.type is EnvironmentType.PRODUCTION or self.is_production

    def summary(self) -> dict[str, Any]:
        """Credential-free view suitable for logs and reports."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "is_production": self.is_production,
            "allow_writes": self.allow_writes,
            "status": self.status.value,
        }

    def __str__(self) -> str:
        return f"{self.name} ({self.type.value})"


__all__ = [
    "EnvironmentType",
    "EnvironmentStatus",
    "ConnectionDescriptor",
    "Environment",
]
