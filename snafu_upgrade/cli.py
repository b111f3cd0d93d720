# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Command line entry point.

Helps upgrade SNAFU context selectors between semver-incompatible versions
by repeatedly running ``cargo check`` and renaming the selectors it reports
as unresolved.

Usage:
    snafu-upgrade                          # Upgrade the current workspace
    snafu-upgrade --dry-run                # Show what would change
    snafu-upgrade --extra-check-arg=--all-features --extra-check-arg=--tests
    snafu-upgrade --directory crates/foo   # Only modify files under a path

Exit codes:
    0 - Build is clean (or dry run finished)
    1 - Could not make further progress
    2 - Aborted (I/O error, unparseable compiler output, bad config)
    3 - cargo could not be run
    130 - Interrupted
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from types import FrameType

from snafu_upgrade import __version__
from snafu_upgrade.compiler import CargoCompiler
from snafu_upgrade.config import ConfigError, UpgradeConfig
from snafu_upgrade.driver import FixPointDriver
from snafu_upgrade.errors import CompilerError, CompilerUnavailableError
from snafu_upgrade.logging import configure_logging
from snafu_upgrade.patcher import SourcePatcher
from snafu_upgrade.report import ChangeReporter, format_remaining
from snafu_upgrade.types import RunOutcome, RunReport


logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2
EXIT_COMPILER_UNAVAILABLE = 3
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="snafu-upgrade",
        description="Helps upgrade SNAFU between semver-incompatible versions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version information",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Do not write changes to disk",
    )
    parser.add_argument(
        "--extra-check-arg",
        action="append",
        dest="extra_check_args",
        metavar="ARG",
        help=(
            "Extra argument to `cargo check` (can be repeated). Use "
            "--extra-check-arg=--flag for values starting with a dash"
        ),
    )
    parser.add_argument(
        "--suffix",
        help='Context selector suffix to use (default: "Snafu")',
    )
    parser.add_argument(
        "--directory",
        type=Path,
        help="Directory to make changes in, relative to --project-dir "
        "(default: the workspace root)",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        help="How many follow-up builds to perform before giving up "
        "(default: 5)",
    )
    parser.add_argument(
        "--project-dir",
        type=Path,
        default=None,
        help="Directory to run cargo in (default: current directory)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML config file (default: snafu-upgrade.yaml in the project "
        "directory, if present)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show detailed information",
    )
    return parser


def format_report(
    report: RunReport,
    patcher: SourcePatcher | None = None,
    verbose: bool = False,
) -> str:
    """Format a run report for display.

    Args:
        report: Report to format.
        patcher: Used to render a diff of dry-run changes in verbose mode.
        verbose: Include per-iteration details and diffs.

    Returns:
        Formatted report.
    """
    lines: list[str] = []

    if verbose:
        for iteration in report.iterations:
            lines.append(
                f"Build {iteration.index}: "
                f"{'ok' if iteration.compiled_successfully else 'failed'}, "
                f"{iteration.diagnostics_seen} diagnostic(s), "
                f"{iteration.fixes_applied}/{iteration.fixes_proposed} "
                f"fix(es) applied"
            )

    if report.outcome is RunOutcome.DRY_RUN and report.changes is not None:
        lines.append(report.changes.render())
        if verbose and patcher is not None:
            diff = report.changes.render_diff(patcher)
            if diff:
                lines.append("")
                lines.append(diff.rstrip("\n"))
    elif report.applied:
        files = report.files_changed
        lines.append(
            f"Renamed {len(report.applied)} context selector(s) in "
            f"{len(files)} file(s)"
        )
        if verbose:
            for fix in report.applied:
                lines.append(f"  {fix.describe()}")

    if report.message:
        lines.append(report.message)

    if report.remaining:
        lines.append("")
        lines.append(format_remaining(report.remaining))

    return "\n".join(lines)


def run(args: argparse.Namespace, cancel: threading.Event) -> int:
    """Run an upgrade with parsed arguments.

    Args:
        args: Parsed command line arguments.
        cancel: Event that stops the run when set.

    Returns:
        Process exit code.
    """
    project_dir = (args.project_dir or Path.cwd()).resolve()

    try:
        config = UpgradeConfig.load(
            project_dir,
            args.config,
            directory=args.directory,
            suffix=args.suffix,
            max_iterations=args.max_iterations,
            dry_run=args.dry_run,
            extra_check_args=args.extra_check_args,
            verbose=args.verbose or None,
        )
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR

    compiler = CargoCompiler(
        project_dir, config.extra_check_args, config.cargo_command
    )
    try:
        workspace_root = compiler.workspace_root()
    except CompilerUnavailableError as e:
        logger.error("%s", e)
        return EXIT_COMPILER_UNAVAILABLE
    except CompilerError as e:
        logger.error("%s", e)
        return EXIT_CONFIG_ERROR

    scope_dir = config.directory or workspace_root
    # Relative to the project directory, as in the config file
    if not scope_dir.is_absolute():
        scope_dir = project_dir / scope_dir
    patcher = SourcePatcher(workspace_root, scope_dir)
    logger.debug(
        "Workspace root %s, modifying files under %s",
        workspace_root,
        patcher.scope_dir,
    )

    driver = FixPointDriver(
        config, compiler, patcher, reporter=ChangeReporter(), cancel=cancel
    )
    report = driver.run()

    output = format_report(report, patcher, verbose=config.verbose)
    if output:
        print(output)

    if cancel.is_set():
        return EXIT_INTERRUPTED
    return report.exit_code


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return 0

    configure_logging(verbose=args.verbose)

    cancel = threading.Event()

    def _request_cancel(signum: int, frame: FrameType | None) -> None:
        logger.warning(
            "Received signal %d; stopping after the current step", signum
        )
        cancel.set()

    previous = {
        sig: signal.signal(sig, _request_cancel)
        for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        return run(args, cancel)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
