# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Value types shared by the rename rule, patcher and driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from snafu_upgrade.diagnostics.types import Diagnostic, Span


if TYPE_CHECKING:
    from snafu_upgrade.report import ChangeReporter


#: Identity of a fix: file plus span position.
FixKey = tuple[str, int | None, int | None, int, int]


@dataclass(frozen=True)
class Fix:
    """A single replacement derived from an accepted diagnostic.

    Attributes:
        file_path: File name as reported by the compiler.
        span: Range to replace.
        replacement_text: New text for the range.
        original_text: Text the range is expected to contain.
    """

    file_path: str
    span: Span
    replacement_text: str
    original_text: str

    @property
    def key(self) -> FixKey:
        """Identity used to deduplicate fixes."""
        return (
            self.file_path,
            self.span.byte_start,
            self.span.byte_end,
            self.span.line_start,
            self.span.column_start,
        )

    def describe(self) -> str:
        """Format as ``file:line:col: old -> new``."""
        return (
            f"{self.span.location()}: "
            f"{self.original_text} -> {self.replacement_text}"
        )


class RunOutcome(Enum):
    """Terminal state of an upgrade run."""

    CONVERGED = "converged"
    STALLED = "stalled"
    ITERATION_LIMIT = "iteration-limit"
    COMPILER_UNAVAILABLE = "compiler-unavailable"
    ABORTED = "aborted"
    DRY_RUN = "dry-run"


_EXIT_CODES = {
    RunOutcome.CONVERGED: 0,
    RunOutcome.DRY_RUN: 0,
    RunOutcome.STALLED: 1,
    RunOutcome.ITERATION_LIMIT: 1,
    RunOutcome.ABORTED: 2,
    RunOutcome.COMPILER_UNAVAILABLE: 3,
}


@dataclass(frozen=True)
class IterationResult:
    """Summary of one compile-extract-patch cycle."""

    index: int
    compiled_successfully: bool
    diagnostics_seen: int = 0
    fixes_proposed: int = 0
    fixes_applied: int = 0
    stale_files: int = 0

    @property
    def made_progress(self) -> bool:
        """Whether any fix reached disk during this iteration."""
        return self.fixes_applied > 0


@dataclass
class RunReport:
    """Result of a whole run.

    Attributes:
        outcome: Terminal state.
        iterations: One entry per compiler invocation.
        applied: Fixes written to disk, in application order.
        remaining: Diagnostics left unhandled when the run stalled.
        message: Human-readable explanation of the outcome.
        changes: Proposed changes collected in dry-run mode.
    """

    outcome: RunOutcome
    iterations: list[IterationResult] = field(default_factory=list)
    applied: list[Fix] = field(default_factory=list)
    remaining: list[Diagnostic] = field(default_factory=list)
    message: str = ""
    changes: ChangeReporter | None = None

    @property
    def exit_code(self) -> int:
        """Process exit code for this outcome."""
        return _EXIT_CODES[self.outcome]

    @property
    def files_changed(self) -> list[str]:
        """Distinct files that received at least one fix."""
        return sorted({fix.file_path for fix in self.applied})
