"""Unit tests for ClonerConfig."""

import pytest

from envclone.config import ClonerConfig, parse_bool
from envclone.exceptions import ConfigurationError


class TestClonerConfigDefaults:
    def test_defaults(self):
        config = ClonerConfig()
        assert config.page_size == 1000
        assert config.batch_size == 500
        assert config.operation_timeout == 30.0
        assert config.log_buffer_capacity == 1000
        assert config.env_dir == "."
        assert config.enable_tracing is True

    @pytest.mark.parametrize(
        "field, value",
        [
            ("page_size", 0),
            ("batch_size", -1),
            ("operation_timeout", 0),
            ("log_buffer_capacity", 0),
        ],
    )
    def test_rejects_non_positive_values(self, field, value):
        with pytest.raises(ConfigurationError, match=f"{field} must be positive"):
            ClonerConfig(**{field: value})


class TestFromEnv:
    def test_reads_prefixed_variables(self):
        config = ClonerConfig.from_env(
            {
                "ENVCLONE_PAGE_SIZE": "200",
                "ENVCLONE_BATCH_SIZE": "50",
                "ENVCLONE_OPERATION_TIMEOUT": "5.5",
                "ENVCLONE_LOG_BUFFER_CAPACITY": "10",
                "ENVCLONE_ENV_DIR": "/etc/envclone",
                "ENVCLONE_ENABLE_TRACING": "off",
            }
        )
        assert config == ClonerConfig(
            page_size=200,
            batch_size=50,
            operation_timeout=5.5,
            log_buffer_capacity=10,
            env_dir="/etc/envclone",
            enable_tracing=False,
        )

    def test_empty_environment_gives_defaults(self):
        assert ClonerConfig.from_env({}) == ClonerConfig()

    def test_overrides_win_and_none_is_ignored(self):
        config = ClonerConfig.from_env({"ENVCLONE_PAGE_SIZE": "200"}, page_size=5, batch_size=None)
        assert config.page_size == 5
        assert config.batch_size == 500

    def test_invalid_number(self):
        with pytest.raises(ConfigurationError, match="ENVCLONE_PAGE_SIZE is not a valid int"):
            ClonerConfig.from_env({"ENVCLONE_PAGE_SIZE": "lots"})

    def test_invalid_boolean(self):
        with pytest.raises(ConfigurationError, match="must be a boolean"):
            ClonerConfig.from_env({"ENVCLONE_ENABLE_TRACING": "maybe"})


class TestToCloneOptions:
    def test_sizes_become_option_defaults(self):
        options = ClonerConfig(page_size=10, batch_size=5, operation_timeout=2.0).to_clone_options(
            tables=["categories"], dry_run=True
        )
        assert options.page_size == 10
        assert options.batch_size == 5
        assert options.operation_timeout == 2.0
        assert options.tables == ["categories"]
        assert options.dry_run is True

    def test_none_options_keep_model_defaults(self):
        options = ClonerConfig().to_clone_options(tables=None)
        assert options.tables is None


class TestParseBool:
    @pytest.mark.parametrize("value", ["1", "true", "YES", " on "])
    def test_truthy(self, value):
        assert parse_bool(value, "X") is True

    @pytest.mark.parametrize("value", ["0", "false", "No", "off"])
    def test_falsy(self, value):
        assert parse_bool(value, "X") is False
