"""Unit tests for the exception hierarchy."""

import pytest

from envclone.exceptions import (
    AnonymizationError,
    BackupError,
    CloneOptionsError,
    ConfigurationError,
    EnvCloneError,
    EnvironmentNotFoundError,
    IntegrityViolationError,
    OperationTimeoutError,
    PlannerError,
    ProductionSafetyViolation,
    SchemaValidationError,
    TableAccessError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            ConfigurationError("x"),
            EnvironmentNotFoundError("x"),
            PlannerError("x"),
            ProductionSafetyViolation("prod", "clone_target", "no"),
            CloneOptionsError("x"),
            TableAccessError("t", "fetch_page", "boom"),
            OperationTimeoutError("t", "fetch_page", 1.0),
            AnonymizationError("t", "id"),
            SchemaValidationError("audit", ["audit.audit_logs"]),
            IntegrityViolationError("reservations", ["bad"]),
            BackupError(None, "x"),
        ],
    )
    def test_all_errors_share_the_root(self, error):
        assert isinstance(error, EnvCloneError)

    def test_not_found_is_configuration_error(self):
        assert issubclass(EnvironmentNotFoundError, ConfigurationError)
        assert issubclass(PlannerError, ConfigurationError)

    def test_timeout_is_table_access_error(self):
        assert issubclass(OperationTimeoutError, TableAccessError)


class TestMessages:
    def test_safety_violation_message_is_reason(self):
        error = ProductionSafetyViolation("prod", "clone_target", "Production environment cannot be used as target")
        assert str(error) == "Production environment cannot be used as target"
        assert error.environment_name == "prod"
        assert error.operation == "clone_target"

    def test_table_access_error(self):
        error = TableAccessError("lofts", "fetch_page", "connection reset")
        assert str(error) == "fetch_page failed for table lofts: connection reset"
        assert error.message == "connection reset"

    def test_timeout_message(self):
        error = OperationTimeoutError("lofts", "count", 2.5)
        assert "timed out after 2.5s" in str(error)
        assert error.timeout == 2.5

    def test_environment_not_found(self):
        error = EnvironmentNotFoundError("training", "/envs/.env.training")
        assert str(error) == "Environment not found: training (looked in /envs/.env.training)"

    def test_integrity_violation_truncates(self):
        error = IntegrityViolationError("reservations", [f"v{i}" for i in range(7)])
        assert "(+2 more)" in str(error)
        assert len(error.violations) == 7

    def test_schema_validation(self):
        error = SchemaValidationError("audit", ["audit.audit_logs"], side="target")
        assert str(error) == "audit schema validation failed on target: missing audit.audit_logs"

    def test_backup_error(self):
        assert str(BackupError(None, "disk full")) == "Backup <new> failed: disk full"
        assert BackupError("backup_1", "x").backup_id == "backup_1"

    def test_anonymization_error(self):
        error = AnonymizationError("profiles", "id")
        assert "'id'" in str(error)
        assert error.table == "profiles"
