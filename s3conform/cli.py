"""Command-line interface for the S3 conformance harness.

Provides argument parsing and main entry point for running the case
catalogue from the command line.
"""

import argparse
import sys
from typing import Optional

from s3conform.config import ConfigError, load_server_config
from s3conform.errors import CatalogueError
from s3conform.logging_config import configure_logging
from s3conform.models import RunSettings, TeardownPolicy
from s3conform.reporters import ConsoleReporter, JsonReporter, Reporter
from s3conform.runner import ConformanceRunner


class CompositeReporter(Reporter):
    """Reporter that delegates to multiple reporters.

    Allows using both ConsoleReporter and JsonReporter simultaneously.
    """

    def __init__(self, reporters: list[Reporter]):
        self._reporters = reporters

    def on_run_start(self, endpoint_url: str, total_cases: int) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_run_start(endpoint_url, total_cases)

    def on_case_start(self, position: int, total: int, case_name: str) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_case_start(position, total, case_name)

    def on_case_complete(self, position: int, total: int, result) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_case_complete(position, total, result)

    def on_run_complete(self, result) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_run_complete(result)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="s3conform",
        description="Check an S3-compatible server against the S3 API's observable behavior",
    )

    parser.add_argument(
        "-c", "--config",
        default="config.json",
        help="Path to configuration file (default: config.json)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress per-case output, show only summary",
    )

    parser.add_argument(
        "-j", "--json-output",
        metavar="PATH",
        help="Write JSON results to file",
    )

    parser.add_argument(
        "--github-actions",
        action="store_true",
        help="Enable GitHub Actions output mode",
    )

    server = parser.add_argument_group("server")
    server.add_argument("--url", help="Endpoint URL of the server under test (S3_URL)")
    server.add_argument("--access", help="Access key (S3_ACCESS)")
    server.add_argument("--secret", help="Secret key (S3_SECRET)")
    server.add_argument("--region", help="Region used for signing (S3_REGION)")
    server.add_argument(
        "--addressing-style",
        choices=["path", "virtual"],
        help="Bucket addressing style (S3_ADDRESSING_STYLE)",
    )

    run = parser.add_argument_group("run")
    run.add_argument(
        "--objects",
        type=_positive_int,
        default=RunSettings.object_count,
        help=f"Number of objects to upload (default: {RunSettings.object_count})",
    )
    run.add_argument(
        "--multipart",
        type=_positive_int,
        default=RunSettings.multipart_count,
        help=f"Number of multipart uploads (default: {RunSettings.multipart_count})",
    )
    run.add_argument(
        "--concurrency",
        type=_positive_int,
        default=RunSettings.max_in_flight,
        help=f"Maximum requests in flight (default: {RunSettings.max_in_flight})",
    )
    run.add_argument(
        "--no-cancel",
        action="store_true",
        help="Keep running sibling probes after the first failure",
    )
    run.add_argument(
        "--teardown",
        choices=[policy.value for policy in TeardownPolicy],
        default=TeardownPolicy.ALWAYS.value,
        help="When to remove the test bucket (default: always)",
    )
    run.add_argument(
        "--timeout",
        type=float,
        default=RunSettings.timeout,
        help=f"Per-request timeout in seconds (default: {RunSettings.timeout:g})",
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level for diagnostics on stderr (default: WARNING)",
    )

    return parser.parse_args(argv)


def create_reporters(args: argparse.Namespace) -> list[Reporter]:
    """Create reporters based on command-line arguments.

    Args:
        args: Parsed command-line arguments

    Returns:
        List of configured reporters
    """
    reporters: list[Reporter] = [ConsoleReporter(quiet=args.quiet)]

    if args.json_output or args.github_actions:
        reporters.append(JsonReporter(
            output_path=args.json_output,
            github_output=args.github_actions,
        ))

    return reporters


def settings_from_args(args: argparse.Namespace) -> RunSettings:
    """Build the run settings from parsed arguments."""
    return RunSettings(
        object_count=args.objects,
        multipart_count=args.multipart,
        max_in_flight=args.concurrency,
        cancel_on_failure=not args.no_cancel,
        teardown=TeardownPolicy(args.teardown),
        timeout=args.timeout,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 for success, 1 for test failures, 2 for errors
    """
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_server_config(
            args.config,
            overrides={
                "endpoint_url": args.url,
                "aws_access_key_id": args.access,
                "aws_secret_access_key": args.secret,
                "region_name": args.region,
                "addressing_style": args.addressing_style,
            },
        )
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    reporters = create_reporters(args)
    if len(reporters) == 1:
        reporter = reporters[0]
    else:
        reporter = CompositeReporter(reporters)

    runner = ConformanceRunner(config, settings=settings_from_args(args), reporter=reporter)
    try:
        result = runner.run()
    except CatalogueError as e:
        print(f"Catalogue error: {e}", file=sys.stderr)
        return 2

    return 0 if result.all_passed else 1


if __name__ == "__main__":
    sys.exit(main())
