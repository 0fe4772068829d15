"""Environment descriptors and resolvers."""

from envclone.environments.models import (
    ConnectionDescriptor,
    Environment,
    EnvironmentStatus,
    EnvironmentType,
)
from envclone.environments.resolver import (
    ALIAS_TYPES,
    DotenvEnvironmentResolver,
    EnvironmentResolver,
    StaticEnvironmentResolver,
)

__all__ = [
    "ConnectionDescriptor",
    "Environment",
    "EnvironmentStatus",
    "EnvironmentType",
    "ALIAS_TYPES",
    "DotenvEnvironmentResolver",
    "EnvironmentResolver",
    "StaticEnvironmentResolver",
]
