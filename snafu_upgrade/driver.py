# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Fix-point driver for the upgrade loop.

Repeats compile -> extract -> rename -> patch until the build is clean or
an iteration makes no progress. Every iteration works only with the
diagnostics of its own compiler run, and each file is written at most once
per run, so spans are always valid for the content they are applied to.

Termination: each productive iteration renames at least one selector the
compiler still reports, and a fix for a given file and span is never issued
twice. An iteration that applies nothing ends the run, and the iteration
limit caps the total number of builds regardless.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum

from snafu_upgrade.compiler import Compiler, CompilerRun
from snafu_upgrade.config import UpgradeConfig
from snafu_upgrade.diagnostics import Diagnostic, extract
from snafu_upgrade.errors import (
    CompilerError,
    CompilerUnavailableError,
    MalformedDiagnosticError,
    OutOfScopeError,
    SourceIOError,
    SpanOutOfRangeError,
)
from snafu_upgrade.patcher import SourcePatcher
from snafu_upgrade.rename import propose_fixes
from snafu_upgrade.report import ChangeReporter
from snafu_upgrade.types import (
    Fix,
    FixKey,
    IterationResult,
    RunOutcome,
    RunReport,
)


logger = logging.getLogger(__name__)

# Lines of raw compiler output quoted when a failed build has no diagnostics
FAILURE_OUTPUT_LINES = 20


class DriverState(Enum):
    """States of the fix-point loop."""

    COMPILING = "compiling"
    EXTRACTING = "extracting"
    PATCHING = "patching"
    CONVERGED = "converged"
    STALLED = "stalled"
    ABORTED = "aborted"


class FixPointDriver:
    """Runs the compile-extract-patch loop to a fixed point.

    All run state lives on the instance, so several drivers can run one
    after another in the same process without interfering.

    Attributes:
        config: Run settings.
        compiler: Produces diagnostics for the current source tree.
        patcher: Writes fixes to disk.
        reporter: Collects fixes in dry-run mode.
        state: Current state of the loop.
    """

    def __init__(
        self,
        config: UpgradeConfig,
        compiler: Compiler,
        patcher: SourcePatcher,
        reporter: ChangeReporter | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            config: Run settings.
            compiler: Compiler to invoke each iteration.
            patcher: Patcher restricted to the project's scope.
            reporter: Change reporter for dry runs. Created on demand.
            cancel: Event that, once set, stops the run before the next
                state transition.
        """
        self.config = config
        self.compiler = compiler
        self.patcher = patcher
        self.reporter = reporter or ChangeReporter()
        self.cancel = cancel or threading.Event()
        self.state = DriverState.COMPILING

        self._report = RunReport(outcome=RunOutcome.ABORTED)
        self._applied_keys: set[FixKey] = set()
        self._compiler_run: CompilerRun | None = None
        self._diagnostics: list[Diagnostic] = []
        self._fixes: list[Fix] = []
        self._stale_retry_used = False

    def run(self) -> RunReport:
        """Run the loop until it converges, stalls or aborts.

        Returns:
            Report describing the outcome and every iteration.
        """
        self.state = DriverState.COMPILING
        self._report = RunReport(outcome=RunOutcome.ABORTED)
        self._applied_keys = set()
        self._compiler_run = None
        self._diagnostics = []
        self._fixes = []
        self._stale_retry_used = False
        if self.config.dry_run:
            self._report.changes = self.reporter

        logger.info("Performing initial check build; this may take a while")

        while self.state in (
            DriverState.COMPILING,
            DriverState.EXTRACTING,
            DriverState.PATCHING,
        ):
            if self.cancel.is_set():
                return self._finish(
                    DriverState.ABORTED,
                    RunOutcome.ABORTED,
                    "Run cancelled; files reflect the last completed "
                    "patch step",
                )

            logger.debug("Driver state: %s", self.state.value)
            try:
                if self.state is DriverState.COMPILING:
                    self._compile()
                elif self.state is DriverState.EXTRACTING:
                    self._extract()
                else:
                    self._patch()
            except CompilerUnavailableError as e:
                return self._finish(
                    DriverState.ABORTED, RunOutcome.COMPILER_UNAVAILABLE, str(e)
                )
            except (
                CompilerError,
                MalformedDiagnosticError,
                SourceIOError,
            ) as e:
                logger.error("Aborting: %s", e)
                return self._finish(
                    DriverState.ABORTED, RunOutcome.ABORTED, str(e)
                )

        return self._report

    # -----------------------------------------------------------------
    # States
    # -----------------------------------------------------------------

    def _compile(self) -> None:
        builds = len(self._report.iterations)
        if builds > self.config.max_iterations:
            self._finish(
                DriverState.STALLED,
                RunOutcome.ITERATION_LIMIT,
                f"Could not converge on a resolution in "
                f"{self.config.max_iterations} attempts",
            )
            return

        if builds > 0:
            logger.info("Performing follow-up check build")
        self._compiler_run = self.compiler.check()
        self.state = DriverState.EXTRACTING

    def _extract(self) -> None:
        compiler_run = self._compiler_run
        assert compiler_run is not None

        self._diagnostics = list(extract(compiler_run.output))
        proposed = propose_fixes(self._diagnostics, self.config.suffix)

        self._fixes = []
        for fix in proposed:
            if fix.key in self._applied_keys:
                logger.warning(
                    "Already fixed %s in this run; not fixing it again",
                    fix.describe(),
                )
                continue
            self._fixes.append(fix)

        logger.debug(
            "Build %s: %d diagnostic(s), %d fix(es)",
            "succeeded" if compiler_run.success else "failed",
            len(self._diagnostics),
            len(self._fixes),
        )

        if self._fixes:
            self.state = DriverState.PATCHING
            return

        self._record_iteration(applied=0, stale=0)
        if compiler_run.success:
            self._finish(
                DriverState.CONVERGED,
                RunOutcome.CONVERGED,
                f"Build is clean after {len(self._report.iterations)} "
                f"check build(s)",
            )
        else:
            self._stall("No applicable fixes for the remaining errors")

    def _patch(self) -> None:
        if self.config.dry_run:
            for fix in self._fixes:
                self.reporter.record(fix)
            self._record_iteration(applied=0, stale=0)
            self._finish(
                DriverState.CONVERGED,
                RunOutcome.DRY_RUN,
                f"Dry run: {len(self.reporter)} change(s) proposed",
            )
            return

        applied, stale = self._apply_fixes(self._fixes)
        self._record_iteration(applied=applied, stale=stale)

        if applied:
            self._stale_retry_used = False
            self.state = DriverState.COMPILING
        elif stale and not self._stale_retry_used:
            # Spans went stale; fresh diagnostics may still be fixable
            self._stale_retry_used = True
            self.state = DriverState.COMPILING
        else:
            self._stall("Did not make progress on a resolution")

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _apply_fixes(self, fixes: list[Fix]) -> tuple[int, int]:
        """Apply fixes file by file.

        Returns:
            Tuple of (fixes applied, files skipped as stale).

        Raises:
            SourceIOError: If any file cannot be read or written.
        """
        by_file: dict[str, list[Fix]] = {}
        for fix in fixes:
            by_file.setdefault(fix.file_path, []).append(fix)

        applied = 0
        stale = 0
        for file_path, file_fixes in by_file.items():
            try:
                count = self.patcher.apply_all(file_path, file_fixes)
            except OutOfScopeError as e:
                logger.warning("Skipping %d fix(es): %s", len(file_fixes), e)
                continue
            except SpanOutOfRangeError as e:
                logger.warning(
                    "Stale diagnostics for %s, will re-check: %s", file_path, e
                )
                stale += 1
                continue

            for fix in file_fixes:
                self._applied_keys.add(fix.key)
                self._report.applied.append(fix)
            applied += count
            logger.info("Fixed %d selector(s) in %s", count, file_path)

        return applied, stale

    def _record_iteration(self, applied: int, stale: int) -> None:
        compiler_run = self._compiler_run
        assert compiler_run is not None
        self._report.iterations.append(
            IterationResult(
                index=len(self._report.iterations) + 1,
                compiled_successfully=compiler_run.success,
                diagnostics_seen=len(self._diagnostics),
                fixes_proposed=len(self._fixes),
                fixes_applied=applied,
                stale_files=stale,
            )
        )

    def _stall(self, reason: str) -> None:
        remaining = [d for d in self._diagnostics if d.is_error]
        self._report.remaining = remaining

        message = reason
        if not remaining and self._compiler_run is not None:
            tail = self._compiler_run.output.strip().split("\n")
            tail = tail[-FAILURE_OUTPUT_LINES:]
            message += "; compiler output:\n" + "\n".join(tail)

        self._finish(DriverState.STALLED, RunOutcome.STALLED, message)

    def _finish(
        self, state: DriverState, outcome: RunOutcome, message: str
    ) -> RunReport:
        self.state = state
        self._report.outcome = outcome
        self._report.message = message
        logger.debug("Driver finished: %s (%s)", state.value, outcome.value)
        return self._report
