"""Tests for the envclone command line entry point."""

import io
import json

import pytest

from envclone.cli import EXIT_CONFIG, EXIT_FAILED, EXIT_OK, build_parser, main, parse_tables
from envclone.environments import StaticEnvironmentResolver


@pytest.fixture(autouse=True)
def no_tracing(monkeypatch):
    monkeypatch.setenv("ENVCLONE_ENABLE_TRACING", "false")


@pytest.fixture
def resolver(prod_env, test_env):
    return StaticEnvironmentResolver({"prod": prod_env, "test": test_env})


@pytest.fixture
def run(resolver, connection_factory):
    def _run(*argv):
        out = io.StringIO()
        code = main(list(argv), resolver=resolver, connection_factory=connection_factory, out=out)
        return code, out.getvalue()

    return _run


class TestParser:
    def test_requires_source_and_target(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--source", "prod"])

    def test_parse_tables(self):
        assert parse_tables("profiles, lofts,,") == ["profiles", "lofts"]
        assert parse_tables(" , ") is None
        assert parse_tables(None) is None


class TestMain:
    def test_successful_clone(self, run, target_store):
        code, output = run("--source", "prod", "--target", "test", "--tables", "categories,lofts")

        assert code == EXIT_OK
        assert "DATA CLONE REPORT" in output
        assert "✅ categories: 2 records" in output
        assert len(target_store.rows("lofts")) == 2

    def test_dry_run_writes_nothing(self, run, target_store):
        code, output = run("--source", "prod", "--target", "test", "--tables", "categories", "--dry-run")

        assert code == EXIT_OK
        assert "dry run (nothing was written)" in output
        assert target_store.rows_written == 0

    def test_failed_table_exits_with_failure(self, run, source_store):
        source_store.fail("lofts", "fetch_page", "connection reset")

        code, output = run("--source", "prod", "--target", "test", "--tables", "categories,lofts")

        assert code == EXIT_FAILED
        assert "❌ lofts: fetch_page failed for table lofts: connection reset" in output

    def test_production_target_is_refused(self, run):
        code, output = run("--source", "test", "--target", "prod")

        assert code == EXIT_FAILED
        assert "Production environment cannot be used as target" in output

    def test_unknown_alias_is_a_configuration_error(self, run, capsys):
        code, output = run("--source", "prod", "--target", "staging")

        assert code == EXIT_CONFIG
        assert output == ""
        assert "Environment not found: staging" in capsys.readouterr().err

    def test_invalid_page_size_is_a_configuration_error(self, run, capsys):
        code, _ = run("--source", "prod", "--target", "test", "--page-size", "0")

        assert code == EXIT_CONFIG
        assert "page_size must be positive" in capsys.readouterr().err

    def test_invalid_environment_variable(self, run, monkeypatch, capsys):
        monkeypatch.setenv("ENVCLONE_BATCH_SIZE", "lots")

        code, _ = run("--source", "prod", "--target", "test")

        assert code == EXIT_CONFIG
        assert "ENVCLONE_BATCH_SIZE is not a valid int" in capsys.readouterr().err


class TestVerify:
    def test_matching_counts(self, run):
        code, output = run("--source", "prod", "--target", "test", "--tables", "categories,lofts", "--verify")

        assert code == EXIT_OK
        assert "✅ categories: 2 rows" in output

    def test_mismatch_exits_with_failure(self, run, target_store):
        target_store.create_table("categories", [{"id": "cat-9", "name": "Extra", "type": "expense"}])

        code, output = run("--source", "prod", "--target", "test", "--tables", "categories", "--verify")

        assert code == EXIT_FAILED
        assert "❌ categories: source=2 target=3" in output

    def test_skipped_for_dry_run(self, run):
        code, output = run(
            "--source", "prod", "--target", "test", "--tables", "categories", "--dry-run", "--verify"
        )

        assert code == EXIT_OK
        assert "VERIFICATION" not in output


class TestJsonOutput:
    def test_payload(self, run):
        code, output = run(
            "--source", "prod", "--target", "test", "--tables", "categories", "--verify", "--json"
        )

        payload = json.loads(output)
        assert code == EXIT_OK
        assert payload["success"] is True
        assert payload["source_environment"] == "prod"
        assert payload["verification"]["all_match"] is True
        assert isinstance(payload["log"], list)

    def test_log_carries_warnings(self, run, source_store):
        source_store.fail("lofts", "fetch_page", "connection reset")

        code, output = run("--source", "prod", "--target", "test", "--tables", "lofts", "--json")

        payload = json.loads(output)
        assert code == EXIT_FAILED
        assert payload["success"] is False
        assert any("connection reset" in entry["message"] for entry in payload["log"])
        assert {entry["level"] for entry in payload["log"]} <= {"WARNING", "ERROR", "CRITICAL"}
