"""
Command line entry point.

    envclone --source prod --target test --tables profiles,lofts --dry-run

Environment descriptors come from ``.env.<alias>`` files in ``--env-dir``.
Exit codes: 0 on success, 1 when the clone (or the count verification)
failed, 2 on a configuration error.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import TextIO

from envclone.access.interface import ConnectionFactory
from envclone.access.sql import SQLAlchemyConnectionFactory
from envclone.cloning.data_cloner import DataCloner
from envclone.cloning.models import CloneResult, TableCloneResult
from envclone.cloning.report import format_clone_report, format_verification_report
from envclone.cloning.validation import CountVerificationReport
from envclone.config import ClonerConfig
from envclone.environments.resolver import DotenvEnvironmentResolver, EnvironmentResolver
from envclone.exceptions import ConfigurationError, TableAccessError
from envclone.logbuffer import LogBuffer
from envclone.serialization import json_dumps

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="envclone",
        description="Clone (and anonymize) data from one environment into another.",
    )
    parser.add_argument("--source", required=True, help="Source environment alias (e.g. prod)")
    parser.add_argument("--target", required=True, help="Target environment alias (e.g. test)")
    parser.add_argument("--tables", help="Comma separated table list; defaults to the standard data set")
    parser.add_argument("--dry-run", action="store_true", help="Read and anonymize but do not write")
    parser.add_argument("--exclude-sensitive", action="store_true", help="Skip tables holding personal data")
    parser.add_argument("--truncate", action="store_true", help="Clear target tables before loading")
    parser.add_argument("--verify", action="store_true", help="Compare row counts after cloning")
    parser.add_argument("--no-anonymize", action="store_true", help="Copy rows without anonymization")
    parser.add_argument("--page-size", type=int, help="Rows per source fetch")
    parser.add_argument("--batch-size", type=int, help="Rows per target write")
    parser.add_argument("--timeout", type=float, help="Seconds allowed per data store call")
    parser.add_argument("--env-dir", help="Directory holding the .env.<alias> files")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    return parser


def parse_tables(value: str | None) -> list[str] | None:
    if not value:
        return None
    tables = [t.strip() for t in value.split(",") if t.strip()]
    return tables or None


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


async def run_clone(
    args: argparse.Namespace,
    config: ClonerConfig,
    resolver: EnvironmentResolver,
    connection_factory: ConnectionFactory,
) -> tuple[CloneResult, CountVerificationReport | None]:
    """Resolve both aliases, clone, and verify counts when asked."""
    source = resolver.resolve(args.source)
    target = resolver.resolve(args.target)
    options = config.to_clone_options(
        tables=parse_tables(args.tables),
        dry_run=args.dry_run,
        exclude_sensitive=args.exclude_sensitive,
        truncate=args.truncate,
        anonymize=not args.no_anonymize,
    )

    def progress(table: TableCloneResult) -> None:
        logger.info("%s", table)

    cloner = DataCloner(
        connection_factory,
        table_callback=progress,
        enable_tracing=config.enable_tracing,
    )
    result = await cloner.clone_data(source, target, options)

    verification = None
    if args.verify and not result.aborted and not args.dry_run:
        tables = [t.table for t in result.tables]
        verification = await cloner.verify_clone(source, target, tables, timeout=config.operation_timeout)
    return result, verification


def main(
    argv: Sequence[str] | None = None,
    *,
    resolver: EnvironmentResolver | None = None,
    connection_factory: ConnectionFactory | None = None,
    out: TextIO | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    out = out or sys.stdout
    configure_logging(args.verbose)

    try:
        config = ClonerConfig.from_env(
            page_size=args.page_size,
            batch_size=args.batch_size,
            operation_timeout=args.timeout,
            env_dir=args.env_dir,
        )
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    buffer = LogBuffer(capacity=config.log_buffer_capacity, level=logging.WARNING)
    package_logger = logging.getLogger("envclone")
    buffer.attach(package_logger)
    try:
        result, verification = asyncio.run(
            run_clone(
                args,
                config,
                resolver or DotenvEnvironmentResolver(config.env_dir),
                connection_factory or SQLAlchemyConnectionFactory(enable_tracing=config.enable_tracing),
            )
        )
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except TableAccessError as e:
        print(f"Verification failed: {e}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        buffer.detach(package_logger)

    if args.json:
        payload = result.to_dict()
        if verification is not None:
            payload["verification"] = verification.to_dict()
        payload["log"] = [entry.to_dict() for entry in buffer.entries()]
        print(json_dumps(payload, indent=2), file=out)
    else:
        print(format_clone_report(result), file=out)
        if verification is not None:
            print(format_verification_report(verification), file=out)

    if not result.success:
        return EXIT_FAILED
    if verification is not None and not verification.all_match:
        return EXIT_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
