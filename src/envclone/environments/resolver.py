"""
Environment resolvers.

A resolver turns an environment alias (``prod``, ``test``, ...) into a fully
populated Environment descriptor. How credentials are stored is the
resolver's concern; the cloners only consume the resolved descriptor.

Example:
    >>> resolver = DotenvEnvironmentResolver(".")
    >>> env = resolver.resolve("test")  # reads ./.env.test
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from dotenv import dotenv_values
from pydantic import SecretStr, ValidationError

from envclone.environments.models import (
    ConnectionDescriptor,
    Environment,
    EnvironmentStatus,
    EnvironmentType,
)
from envclone.exceptions import ConfigurationError, EnvironmentNotFoundError

logger = logging.getLogger(__name__)

# Alias -> environment type
ALIAS_TYPES: dict[str, EnvironmentType] = {
    "prod": EnvironmentType.PRODUCTION,
    "production": EnvironmentType.PRODUCTION,
    "test": EnvironmentType.TEST,
    "dev": EnvironmentType.DEVELOPMENT,
    "development": EnvironmentType.DEVELOPMENT,
    "training": EnvironmentType.TRAINING,
    "learning": EnvironmentType.TRAINING,
}

_TRUTHY = {"1", "true", "yes", "on"}


@runtime_checkable
class EnvironmentResolver(Protocol):
    """Protocol for anything that can resolve an alias to an Environment."""

    def resolve(self, alias: str) -> Environment:
        """
        Resolve an environment alias.

        Raises:
            EnvironmentNotFoundError: If the alias is unknown
            ConfigurationError: If the configuration is incomplete
        """
        ...


class StaticEnvironmentResolver:
    """Resolver backed by an in-memory mapping, mostly for tests and embedding."""

    def __init__(self, environments: dict[str, Environment] | None = None) -> None:
        self._environments: dict[str, Environment] = dict(environments or {})

    def register(self, alias: str, environment: Environment) -> None:
        self._environments[alias] = environment

    def resolve(self, alias: str) -> Environment:
        try:
            return self._environments[alias]
        except KeyError:
            raise EnvironmentNotFoundError(alias) from None


class DotenvEnvironmentResolver:
    """
    Resolver reading one dotenv file per environment.

    ``resolve("test")`` reads ``<directory>/.env.test``. Recognised keys:

    - DATABASE_URL (required)
    - ANON_KEY
    - SERVICE_ROLE_KEY (required unless the environment is production)
    - ENVIRONMENT_TYPE (defaults from the alias)
    - ENVIRONMENT_NAME (defaults to the alias)
    - ALLOW_WRITES (ignored for production, which is always read-only)

    Args:
        directory: Directory holding the dotenv files
        file_pattern: Filename pattern, ``{alias}`` is substituted
    """

    def __init__(self, directory: str | Path = ".", file_pattern: str = ".env.{alias}") -> None:
        self._directory = Path(directory)
        self._file_pattern = file_pattern

    def path_for(self, alias: str) -> Path:
        return self._directory / self._file_pattern.format(alias=alias)

    def resolve(self, alias: str) -> Environment:
        path = self.path_for(alias)
        if not path.is_file():
            raise EnvironmentNotFoundError(alias, str(path))

        values = {k: v for k, v in dotenv_values(path).items() if v is not None}
        logger.debug("Loaded %d settings for environment %s from %s", len(values), alias, path)

        env_type = self._environment_type(alias, values.get("ENVIRONMENT_TYPE"))
        url = values.get("DATABASE_URL", "").strip()
        if not url:
            raise ConfigurationError(f"DATABASE_URL missing for environment {alias} ({path})")

        service_key = values.get("SERVICE_ROLE_KEY") or None
        is_production = env_type is EnvironmentType.PRODUCTION
        if not is_production and not service_key:
            raise ConfigurationError(
                f"SERVICE_ROLE_KEY missing for writable environment {alias} ({path})"
            )

        if is_production:
            allow_writes = False
        else:
            allow_writes = values.get("ALLOW_WRITES", "true").strip().lower() in _TRUTHY

        try:
            return Environment(
                id=alias,
                name=values.get("ENVIRONMENT_NAME") or alias,
                type=env_type,
                connection=ConnectionDescriptor(
                    url=url,
                    anon_key=SecretStr(values["ANON_KEY"]) if values.get("ANON_KEY") else None,
                    service_key=SecretStr(service_key) if service_key else None,
                ),
                allow_writes=allow_writes,
                status=EnvironmentStatus.READ_ONLY if is_production else EnvironmentStatus.ACTIVE,
                description=f"Loaded from {path.name}",
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration for environment {alias}: {e}") from e

    @staticmethod
    def _environment_type(alias: str, declared: str | None) -> EnvironmentType:
        if declared:
            key = declared.strip().lower()
            if key in ALIAS_TYPES:
                return ALIAS_TYPES[key]
            raise ConfigurationError(f"Unknown ENVIRONMENT_TYPE {declared!r} for {alias}")
        try:
            return ALIAS_TYPES[alias.lower()]
        except KeyError:
            raise ConfigurationError(
                f"Cannot infer environment type from alias {alias!r}; set ENVIRONMENT_TYPE"
            ) from None


__all__ = [
    "ALIAS_TYPES",
    "EnvironmentResolver",
    "StaticEnvironmentResolver",
    "DotenvEnvironmentResolver",
]
