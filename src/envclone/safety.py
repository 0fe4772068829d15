"""
Production safety guard.

The guard is consulted before any read or write happens. Each check either
returns normally or raises ProductionSafetyViolation; it has no other
side effects.

Rules:
- A production source must be read-only (allow_writes=False).
- A production environment is never a clone target. There is no override.
- Every environment must carry a usable connection descriptor, and a target
  must carry privileged credentials.

Example:
    >>> guard = ProductionSafetyGuard()
    >>> guard.validate_clone_pair(source, target)
"""

from __future__ import annotations

import logging

from envclone.environments.models import Environment, EnvironmentStatus
from envclone.exceptions import ProductionSafetyViolation

logger = logging.getLogger(__name__)

PRODUCTION_TARGET_MESSAGE = "Production environment cannot be used as target"
PRODUCTION_WRITABLE_MESSAGE = "Production environment must be read-only (allow_writes must be False)"


class ProductionSafetyGuard:
    """
    Gate that vetoes illegal uses of production environments.

    Instances are stateless apart from the violation counter and are
    meant to be injected into the cloners.
    """

    def __init__(self) -> None:
        self.violations_detected = 0

    def validate_clone_source(self, env: Environment) -> None:
        """Fail if a production source is not read-only."""
        if env.is_production_like and env.allow_writes is not False:
            self._violation(env, "clone_source", PRODUCTION_WRITABLE_MESSAGE)
        if env.is_production_like and env.status is not EnvironmentStatus.READ_ONLY:
            logger.warning(
                "Production environment %s is not marked read_only (status=%s)",
                env.name,
                env.status.value,
            )

    def validate_clone_target(self, env: Environment) -> None:
        """Fail unconditionally if the target is production."""
        if env.is_production_like:
            self._violation(env, "clone_target", PRODUCTION_TARGET_MESSAGE)
        if not env.allow_writes:
            self._violation(
                env,
                "clone_target",
                f"Target environment {env.name} does not allow writes",
            )

    def validate_database_connection(self, env: Environment, *, for_write: bool = False) -> None:
        """Fail if the environment cannot be connected to safely."""
        if not env.connection.url.strip():
            self._violation(env, "database_connection", f"Environment {env.name} has no connection URL")
        if for_write and env.is_production_like:
            self._violation(env, "database_connection", PRODUCTION_TARGET_MESSAGE)
        if for_write and not env.connection.has_service_credentials:
            logger.warning("Target environment %s has no service credentials configured", env.name)

    def validate_clone_pair(self, source: Environment, target: Environment) -> None:
        """Run every check needed before cloning from source to target."""
        self.validate_clone_source(source)
        self.validate_clone_target(target)
        self.validate_database_connection(source)
        self.validate_database_connection(target, for_write=True)
        if source.id == target.id:
            self._violation(
                target,
                "clone_target",
                f"Source and target refer to the same environment ({target.name})",
            )

    def enforce_write_access(self, env: Environment, operation: str) -> None:
        """Fail if `operation` would write to a production or read-only environment."""
        if env.is_production_like:
            self._violation(env, operation, f"{operation} is not allowed on production environment {env.name}")
        if not env.allow_writes:
            self._violation(env, operation, f"{operation} requires write access to {env.name}")

    def _violation(self, env: Environment, operation: str, reason: str) -> None:
        self.violations_detected += 1
        logger.error(
            "Production safety violation on %s during %s: %s",
            env.name,
            operation,
            reason,
            extra={"environment": env.summary(), "operation": operation},
        )
        raise ProductionSafetyViolation(env.name, operation, reason)


__all__ = [
    "ProductionSafetyGuard",
    "PRODUCTION_TARGET_MESSAGE",
    "PRODUCTION_WRITABLE_MESSAGE",
]
