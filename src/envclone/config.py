"""
Library tunables.

ClonerConfig holds the defaults used by the CLI and composition roots. It
can be built from ``ENVCLONE_*`` environment variables:

- ENVCLONE_PAGE_SIZE
- ENVCLONE_BATCH_SIZE
- ENVCLONE_OPERATION_TIMEOUT
- ENVCLONE_LOG_BUFFER_CAPACITY
- ENVCLONE_ENV_DIR
- ENVCLONE_ENABLE_TRACING
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from envclone.cloning.models import CloneOptions
from envclone.exceptions import ConfigurationError

ENV_PREFIX = "ENVCLONE_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class ClonerConfig:
    """
    Defaults for clone runs.

    Attributes:
        page_size: Rows per source fetch
        batch_size: Rows per target write
        operation_timeout: Seconds allowed per data store call
        log_buffer_capacity: Records kept by the in-process log buffer
        env_dir: Directory holding the ``.env.<alias>`` files
        enable_tracing: Whether to enable OpenTelemetry tracing

    Example:
        >>> config = ClonerConfig.from_env()
        >>> options = config.to_clone_options(tables=["categories"], dry_run=True)
    """

    page_size: int = 1000
    batch_size: int = 500
    operation_timeout: float = 30.0
    log_buffer_capacity: int = 1000
    env_dir: str = "."
    enable_tracing: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.page_size < 1:
            raise ConfigurationError(f"page_size must be positive, got {self.page_size}.")
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be positive, got {self.batch_size}.")
        if self.operation_timeout <= 0:
            raise ConfigurationError(
                f"operation_timeout must be positive, got {self.operation_timeout}. "
                "Use a value like 30.0 (default) seconds."
            )
        if self.log_buffer_capacity < 1:
            raise ConfigurationError(
                f"log_buffer_capacity must be positive, got {self.log_buffer_capacity}."
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> ClonerConfig:
        """
        Build a config from ``ENVCLONE_*`` variables.

        Args:
            environ: Variables to read (defaults to ``os.environ``)
            **overrides: Values that win over the environment

        Raises:
            ConfigurationError: If a variable cannot be parsed
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        converters = {
            "page_size": int,
            "batch_size": int,
            "operation_timeout": float,
            "log_buffer_capacity": int,
            "env_dir": str,
        }
        for field_name, convert in converters.items():
            name = f"{ENV_PREFIX}{field_name.upper()}"
            raw = environ.get(name)
            if raw is None or raw == "":
                continue
            try:
                values[field_name] = convert(raw)
            except ValueError as e:
                raise ConfigurationError(f"{name} is not a valid {convert.__name__}: {raw!r}") from e

        tracing = environ.get(f"{ENV_PREFIX}ENABLE_TRACING")
        if tracing:
            values["enable_tracing"] = parse_bool(tracing, f"{ENV_PREFIX}ENABLE_TRACING")

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def to_clone_options(self, **options: Any) -> CloneOptions:
        """CloneOptions with this config's sizes and timeout as defaults."""
        defaults = {
            "page_size": self.page_size,
            "batch_size": self.batch_size,
            "operation_timeout": self.operation_timeout,
        }
        defaults.update({k: v for k, v in options.items() if v is not None})
        return CloneOptions(**defaults)


__all__ = ["ClonerConfig", "parse_bool"]
