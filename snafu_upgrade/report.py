# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Reporting of proposed and remaining changes.

``ChangeReporter`` collects the fixes a dry run would apply and renders
them as a summary or unified diff. ``format_remaining`` renders the
diagnostics a stalled run could not handle so they can be fixed by hand.
"""

from __future__ import annotations

import difflib
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from snafu_upgrade.diagnostics.types import Diagnostic
from snafu_upgrade.types import Fix


if TYPE_CHECKING:
    from snafu_upgrade.patcher import SourcePatcher


logger = logging.getLogger(__name__)


class ChangeReporter:
    """Collects would-be edits instead of applying them."""

    def __init__(self) -> None:
        self._fixes: list[Fix] = []

    def __len__(self) -> int:
        return len(self._fixes)

    def record(self, fix: Fix) -> None:
        """Record a fix that would have been applied."""
        logger.debug("Would apply %s", fix.describe())
        self._fixes.append(fix)

    @property
    def fixes(self) -> list[Fix]:
        """Recorded fixes in order of recording."""
        return list(self._fixes)

    @property
    def files(self) -> list[str]:
        """Distinct files with at least one recorded fix."""
        return sorted({fix.file_path for fix in self._fixes})

    def by_file(self) -> dict[str, list[Fix]]:
        """Group recorded fixes by file, preserving recording order."""
        grouped: dict[str, list[Fix]] = {}
        for fix in self._fixes:
            grouped.setdefault(fix.file_path, []).append(fix)
        return grouped

    def render(self) -> str:
        """Render a one-line-per-change summary.

        Returns:
            Summary text, ending with a totals line.
        """
        if not self._fixes:
            return "No changes needed."

        lines: list[str] = []
        for file_path, fixes in sorted(self.by_file().items()):
            lines.append(f"Would write modified content to '{file_path}'")
            for fix in sorted(fixes, key=_position):
                lines.append(f"  {fix.describe()}")

        total = len(self._fixes)
        files = len(self.files)
        lines.append("")
        lines.append(
            f"{total} change{'s' if total != 1 else ''} in "
            f"{files} file{'s' if files != 1 else ''}"
        )
        return "\n".join(lines)

    def render_diff(self, patcher: SourcePatcher) -> str:
        """Render recorded fixes as a unified diff.

        Files are read through *patcher* but never written.

        Args:
            patcher: Patcher used to resolve and preview each file.

        Returns:
            Unified diff text (empty when nothing was recorded).
        """
        chunks: list[str] = []
        for file_path, fixes in sorted(self.by_file().items()):
            before, after = patcher.preview(file_path, fixes)
            chunks.extend(
                difflib.unified_diff(
                    before.splitlines(keepends=True),
                    after.splitlines(keepends=True),
                    fromfile=f"a/{file_path}",
                    tofile=f"b/{file_path}",
                )
            )
        return "".join(chunks)


def format_remaining(diagnostics: Iterable[Diagnostic]) -> str:
    """Render diagnostics left unfixed, verbatim, for manual follow-up."""
    rendered = [diagnostic.describe() for diagnostic in diagnostics]
    if not rendered:
        return ""
    header = (
        f"{len(rendered)} diagnostic"
        f"{'s' if len(rendered) != 1 else ''} could not be fixed "
        "automatically:"
    )
    return "\n\n".join([header, *rendered])


def _position(fix: Fix) -> tuple[int, int]:
    return (fix.span.line_start, fix.span.column_start)
