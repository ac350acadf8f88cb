"""
Vault Import - CLI Entry Point.

Runs a bulk import from an export file against the in-memory backend, or
serves the import endpoint over HTTP.

Usage:
    # Import an export file once and print the report
    python -m vault_import.main export.json

    # Simulate a flaky store (30% of writes rejected)
    python -m vault_import.main export.json --fail-rate 0.3

    # Serve POST /import on the configured host and port
    python -m vault_import.main --serve --token dev-token

Example:
    >>> python -m vault_import.main export.json
    INFO     vault_import.engine.retry - folders: DONE, total: 3, error: 0, rounds: 1
    INFO     vault_import.engine.retry - ciphers: DONE, total: 5, error: 0, rounds: 1
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import NoReturn

import orjson
from aiohttp import web

from vault_import.api.handler import create_memory_app
from vault_import.backends.base import ImportContext
from vault_import.backends.memory import InMemoryBackend
from vault_import.config import AppConfig, ServerConfig
from vault_import.engine.coordinator import ImportCoordinator, ImportSettings
from vault_import.models.schemas import ImportBatch, normalize_keys
from vault_import.utils.exceptions import VaultImportError
from vault_import.utils.logger import get_import_logger

# Handlers live on the package logger; module loggers propagate into it
get_import_logger()
logger = logging.getLogger(__name__)


class VaultImportCLI:
    """
    Command-line interface for the import service.

    Features:
        - One-shot import of a JSON export file
        - HTTP server mode with a static development token
        - Injected write failures to exercise retry rounds
    """

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()
        self.args = None

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="vault-import",
            description="Bulk import of folders and ciphers with bounded retries.",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Configuration:
  Set environment variables in .env file:
    - IMPORT_MAX_ROUNDS: Creation rounds per record kind (default: 4)
    - IMPORT_BACKOFF_MAX_SECONDS: Retry delay upper bound (default: 3.0)
    - CAPACITY_POLL_INTERVAL_SECONDS: Status poll interval (default: 1.0)
    - SERVER_HOST / SERVER_PORT: HTTP bind address (default: 127.0.0.1:8080)
            """,
        )

        parser.add_argument(
            "file",
            nargs="?",
            type=Path,
            help="Export file with folders, ciphers and folderRelationships",
        )
        parser.add_argument(
            "--serve",
            action="store_true",
            help="Serve POST /import instead of importing a file",
        )
        parser.add_argument("--host", default=ServerConfig.HOST, help="Bind host (serve mode)")
        parser.add_argument("--port", type=int, default=ServerConfig.PORT, help="Bind port (serve mode)")
        parser.add_argument(
            "--token",
            default="dev-token",
            help="Bearer token accepted in serve mode (default: dev-token)",
        )
        parser.add_argument(
            "--owner",
            default="local-user",
            help="Owner id the records are created for (default: local-user)",
        )
        parser.add_argument(
            "--fail-rate",
            type=float,
            default=0.0,
            metavar="RATE",
            help="Probability that the in-memory store rejects a write (default: 0)",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print the report as JSON",
        )
        parser.add_argument(
            "--log-level",
            type=str,
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Override default log level",
        )
        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {AppConfig.VERSION}",
        )

        return parser

    def _validate_configuration(self) -> None:
        is_valid, errors = AppConfig.validate()
        if not is_valid:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            sys.exit(2)

    async def _run_file(self, path: Path, backend: InMemoryBackend) -> int:
        """
        Import one export file.

        Returns:
            Process exit code (0 complete, 1 partial, 2 rejected)
        """
        try:
            body = normalize_keys(orjson.loads(path.read_bytes()))
        except (OSError, orjson.JSONDecodeError) as e:
            logger.error(f"Cannot read {path}: {e}")
            return 2

        coordinator = ImportCoordinator(
            backend.folders, backend.ciphers, backend, control=backend,
            settings=ImportSettings.from_env(),
        )

        try:
            batch = ImportBatch.from_body(body)
            report = await coordinator.run(batch, ImportContext(owner_id=self.args.owner))
        except VaultImportError as e:
            logger.error(f"Import rejected: {e}")
            return 2

        if self.args.json:
            print(orjson.dumps(report.to_dict(), option=orjson.OPT_INDENT_2).decode("utf-8"))
        else:
            print("\n" + "=" * 70)
            print("  IMPORT REPORT")
            print("=" * 70 + "\n")
            for line in report.lines:
                print(f"  {line}")
            print(
                f"\n  Folders: {report.folders_created}/{report.folders_total} "
                f"in {report.folder_rounds} round(s)"
            )
            print(
                f"  Ciphers: {report.ciphers_created}/{report.ciphers_total} "
                f"in {report.cipher_rounds} round(s)"
            )
            print("\n" + "=" * 70 + "\n")

        return 0 if report.complete else 1

    def _serve(self, backend: InMemoryBackend) -> None:
        backend.tokens[self.args.token] = self.args.owner
        app = create_memory_app(backend, ImportSettings.from_env())
        logger.info(f"Serving POST /import on {self.args.host}:{self.args.port}")
        web.run_app(app, host=self.args.host, port=self.args.port, print=None)

    def run(self) -> NoReturn:
        """Parse arguments and execute the requested mode."""
        self.args = self.parser.parse_args()

        if self.args.log_level:
            get_import_logger(self.args.log_level)

        print(f"\n{AppConfig.APP_NAME} v{AppConfig.VERSION}")
        print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

        self._validate_configuration()

        if not 0.0 <= self.args.fail_rate <= 1.0:
            self.parser.error("--fail-rate must be between 0 and 1")

        backend = InMemoryBackend(fail_rate=self.args.fail_rate)

        if self.args.serve:
            self._serve(backend)
            sys.exit(0)

        if self.args.file is None:
            self.parser.error("No export file provided. Use --help for usage information.")

        sys.exit(asyncio.run(self._run_file(self.args.file, backend)))


def main() -> NoReturn:
    """Application entry point."""
    try:
        cli = VaultImportCLI()
        cli.run()
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        print(f"\nFatal Error: {e}\n", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
