"""Unit tests for environment resolvers."""

import pytest

from envclone.environments import (
    DotenvEnvironmentResolver,
    EnvironmentResolver,
    EnvironmentStatus,
    EnvironmentType,
    StaticEnvironmentResolver,
)
from envclone.exceptions import ConfigurationError, EnvironmentNotFoundError
from tests.fixtures import make_environment


def write_env(directory, alias, **values):
    lines = [f"{key}={value}" for key, value in values.items()]
    (directory / f".env.{alias}").write_text("\n".join(lines) + "\n", encoding="utf-8")


class TestStaticEnvironmentResolver:
    def test_resolve_registered(self):
        env = make_environment("test", EnvironmentType.TEST)
        resolver = StaticEnvironmentResolver({"test": env})
        assert resolver.resolve("test") is env

    def test_register(self):
        resolver = StaticEnvironmentResolver()
        env = make_environment("dev", EnvironmentType.DEVELOPMENT)
        resolver.register("dev", env)
        assert resolver.resolve("dev") is env

    def test_unknown_alias(self):
        with pytest.raises(EnvironmentNotFoundError) as exc_info:
            StaticEnvironmentResolver().resolve("nope")
        assert exc_info.value.alias == "nope"

    def test_implements_protocol(self):
        assert isinstance(StaticEnvironmentResolver(), EnvironmentResolver)


class TestDotenvEnvironmentResolver:
    def test_resolves_test_environment(self, tmp_path):
        write_env(tmp_path, "test", DATABASE_URL="sqlite:///test.db", SERVICE_ROLE_KEY="svc", ANON_KEY="anon")

        env = DotenvEnvironmentResolver(tmp_path).resolve("test")

        assert env.id == "test"
        assert env.type is EnvironmentType.TEST
        assert env.allow_writes is True
        assert env.connection.url == "sqlite:///test.db"
        assert env.connection.service_key.get_secret_value() == "svc"
        assert env.connection.anon_key.get_secret_value() == "anon"

    def test_production_is_always_read_only(self, tmp_path):
        """ALLOW_WRITES cannot make production writable."""
        write_env(tmp_path, "prod", DATABASE_URL="postgresql://db/app", ALLOW_WRITES="true")

        env = DotenvEnvironmentResolver(tmp_path).resolve("prod")

        assert env.type is EnvironmentType.PRODUCTION
        assert env.is_production is True
        assert env.allow_writes is False
        assert env.status is EnvironmentStatus.READ_ONLY

    def test_missing_file(self, tmp_path):
        with pytest.raises(EnvironmentNotFoundError) as exc_info:
            DotenvEnvironmentResolver(tmp_path).resolve("training")
        assert ".env.training" in str(exc_info.value)

    def test_missing_database_url(self, tmp_path):
        write_env(tmp_path, "test", SERVICE_ROLE_KEY="svc")
        with pytest.raises(ConfigurationError, match="DATABASE_URL missing"):
            DotenvEnvironmentResolver(tmp_path).resolve("test")

    def test_writable_environment_needs_service_key(self, tmp_path):
        write_env(tmp_path, "training", DATABASE_URL="sqlite:///t.db")
        with pytest.raises(ConfigurationError, match="SERVICE_ROLE_KEY missing"):
            DotenvEnvironmentResolver(tmp_path).resolve("training")

    def test_declared_type_and_name(self, tmp_path):
        write_env(
            tmp_path,
            "sandbox",
            DATABASE_URL="sqlite:///s.db",
            SERVICE_ROLE_KEY="svc",
            ENVIRONMENT_TYPE="development",
            ENVIRONMENT_NAME="Sandbox",
        )

        env = DotenvEnvironmentResolver(tmp_path).resolve("sandbox")

        assert env.type is EnvironmentType.DEVELOPMENT
        assert env.name == "Sandbox"
        assert env.label == "sandbox"

    def test_unknown_alias_without_declared_type(self, tmp_path):
        write_env(tmp_path, "sandbox", DATABASE_URL="sqlite:///s.db", SERVICE_ROLE_KEY="svc")
        with pytest.raises(ConfigurationError, match="Cannot infer environment type"):
            DotenvEnvironmentResolver(tmp_path).resolve("sandbox")

    def test_unknown_declared_type(self, tmp_path):
        write_env(tmp_path, "test", DATABASE_URL="sqlite:///s.db", SERVICE_ROLE_KEY="svc", ENVIRONMENT_TYPE="qa")
        with pytest.raises(ConfigurationError, match="Unknown ENVIRONMENT_TYPE"):
            DotenvEnvironmentResolver(tmp_path).resolve("test")

    def test_allow_writes_false(self, tmp_path):
        write_env(tmp_path, "dev", DATABASE_URL="sqlite:///d.db", SERVICE_ROLE_KEY="svc", ALLOW_WRITES="no")
        assert DotenvEnvironmentResolver(tmp_path).resolve("dev").allow_writes is False

    def test_custom_file_pattern(self, tmp_path):
        (tmp_path / "test.env").write_text("DATABASE_URL=sqlite:///t.db\nSERVICE_ROLE_KEY=svc\n")
        resolver = DotenvEnvironmentResolver(tmp_path, file_pattern="{alias}.env")
        assert resolver.resolve("test").type is EnvironmentType.TEST
