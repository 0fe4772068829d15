"""Unit tests for Environment and ConnectionDescriptor."""

import pytest
from pydantic import ValidationError

from envclone.environments import (
    ConnectionDescriptor,
    Environment,
    EnvironmentStatus,
    EnvironmentType,
)
from tests.fixtures import make_environment


class TestEnvironment:
    def test_production_flag_derived_from_type(self):
        """is_production defaults from the environment type."""
        env = make_environment("prod", EnvironmentType.PRODUCTION)
        assert env.is_production is True
        assert env.is_production_like is True

    def test_non_production_type(self):
        env = make_environment("test", EnvironmentType.TEST)
        assert env.is_production is False
        assert env.is_production_like is False

    def test_explicit_production_flag_wins(self):
        """A test-typed environment flagged production is treated as production."""
        env = make_environment("staging", EnvironmentType.TEST, is_production=True)
        assert env.is_production_like is True

    def test_label_slugifies_name(self):
        env = make_environment("training", EnvironmentType.TRAINING, name="Training Env #2")
        assert env.label == "training-env-2"

    def test_label_falls_back_to_type(self):
        env = make_environment("x", EnvironmentType.DEVELOPMENT, name="***")
        assert env.label == "development"

    def test_is_frozen(self):
        env = make_environment("test", EnvironmentType.TEST)
        with pytest.raises(ValidationError):
            env.allow_writes = False

    def test_summary_has_no_credentials(self):
        env = make_environment("test", EnvironmentType.TEST)
        summary = env.summary()
        assert summary["type"] == "test"
        assert summary["status"] == EnvironmentStatus.ACTIVE.value
        assert "connection" not in summary
        assert "service-key" not in str(summary)

    def test_str(self):
        assert str(make_environment("test", EnvironmentType.TEST)) == "test (test)"

    def test_requires_connection(self):
        with pytest.raises(ValidationError):
            Environment(id="x", name="x", type=EnvironmentType.TEST)


class TestConnectionDescriptor:
    def test_service_credentials(self):
        assert ConnectionDescriptor(url="sqlite://", service_key="k").has_service_credentials
        assert not ConnectionDescriptor(url="sqlite://").has_service_credentials
        assert not ConnectionDescriptor(url="sqlite://", service_key="").has_service_credentials

    def test_secret_is_masked(self):
        descriptor = ConnectionDescriptor(url="sqlite://", service_key="very-secret")
        assert "very-secret" not in repr(descriptor)

    def test_empty_url_rejected(self):
        with pytest.raises(ValidationError):
            ConnectionDescriptor(url="")
