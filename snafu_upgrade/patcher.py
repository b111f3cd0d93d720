# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Span-exact source rewriting.

The patcher replaces byte ranges reported by the compiler and leaves every
other byte of the file untouched, including line endings and trailing
whitespace. Files are written atomically (temporary file in the same
directory, then rename) so an interrupted run never leaves a half-written
file behind.

Only files inside the scope directory may be patched.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from snafu_upgrade.diagnostics.types import Span
from snafu_upgrade.errors import (
    OutOfScopeError,
    SourceIOError,
    SpanOutOfRangeError,
)
from snafu_upgrade.types import Fix


logger = logging.getLogger(__name__)

# (start, end, replacement, expected original bytes or None)
_Edit = tuple[int, int, bytes, bytes | None]


def splice(content: bytes, start: int, end: int, replacement: bytes) -> bytes:
    """Replace ``content[start:end]`` with *replacement*.

    Raises:
        SpanOutOfRangeError: If the range is not within *content*.
    """
    if not 0 <= start <= end <= len(content):
        raise SpanOutOfRangeError(
            f"Span [{start}, {end}) exceeds content of {len(content)} bytes"
        )
    return content[:start] + replacement + content[end:]


class SourcePatcher:
    """Applies fixes to source files under a project directory.

    Attributes:
        base_dir: Directory relative file names are resolved against
            (the cargo workspace root).
        scope_dir: Only files inside this directory may be written.
    """

    def __init__(self, base_dir: Path, scope_dir: Path | None = None) -> None:
        """Initialize the patcher.

        Args:
            base_dir: Directory relative file names are resolved against.
            scope_dir: Directory patching is restricted to. Defaults to
                *base_dir*.
        """
        self.base_dir = base_dir.resolve()
        self.scope_dir = (scope_dir or base_dir).resolve()

    def resolve(self, file_name: str) -> Path:
        """Resolve a compiler-reported file name to an in-scope path.

        Raises:
            OutOfScopeError: If the file lies outside ``scope_dir``.
        """
        path = Path(file_name)
        if not path.is_absolute():
            path = self.base_dir / path
        path = path.resolve()
        if not path.is_relative_to(self.scope_dir):
            raise OutOfScopeError(
                f"Attempted to update file outside of safe directory. "
                f"{path} is not within {self.scope_dir}"
            )
        return path

    def apply(
        self,
        file_path: str,
        span: Span,
        replacement: str,
        expected: str | None = None,
    ) -> None:
        """Replace exactly the bytes covered by *span*.

        Args:
            file_path: File name as reported by the compiler.
            span: Range to replace.
            replacement: New text.
            expected: Text the range must currently contain, if known.

        Raises:
            OutOfScopeError: If the file is outside the scope directory.
            SourceIOError: If the file cannot be read or written.
            SpanOutOfRangeError: If the span no longer fits the file.
        """
        path = self.resolve(file_path)
        content = self._read(path)
        edit = self._edit_for(content, span, replacement, expected)
        self._write(path, self._splice_all(content, [edit]))

    def apply_all(self, file_path: str, fixes: Iterable[Fix]) -> int:
        """Apply every fix for one file in a single read and write.

        All spans are validated against the content read at the start of
        the call. Edits are applied in ascending order so each one lands
        at its original offset.

        Args:
            file_path: File name as reported by the compiler.
            fixes: Fixes targeting *file_path*, all from the same
                compiler run.

        Returns:
            Number of fixes applied.

        Raises:
            OutOfScopeError: If the file is outside the scope directory.
            SourceIOError: If the file cannot be read or written.
            SpanOutOfRangeError: If any span is stale or spans overlap.
        """
        path = self.resolve(file_path)
        content = self._read(path)
        edits = self._edits_for(content, fixes)
        if not edits:
            return 0
        self._write(path, self._splice_all(content, edits))
        logger.debug("Applied %d fix(es) to %s", len(edits), path)
        return len(edits)

    def preview(self, file_path: str, fixes: Iterable[Fix]) -> tuple[str, str]:
        """Compute the file's content before and after *fixes*.

        Nothing is written.

        Returns:
            Tuple of (before, after) text.
        """
        path = self.resolve(file_path)
        content = self._read(path)
        after = self._splice_all(content, self._edits_for(content, fixes))
        return (
            content.decode("utf-8", errors="replace"),
            after.decode("utf-8", errors="replace"),
        )

    def _edits_for(self, content: bytes, fixes: Iterable[Fix]) -> list[_Edit]:
        return [
            self._edit_for(
                content, fix.span, fix.replacement_text, fix.original_text
            )
            for fix in fixes
        ]

    def _edit_for(
        self,
        content: bytes,
        span: Span,
        replacement: str,
        expected: str | None,
    ) -> _Edit:
        start, end = byte_range(content, span)
        return (
            start,
            end,
            replacement.encode("utf-8"),
            expected.encode("utf-8") if expected is not None else None,
        )

    @staticmethod
    def _splice_all(content: bytes, edits: list[_Edit]) -> bytes:
        """Apply non-overlapping edits in ascending order."""
        pieces: list[bytes] = []
        cursor = 0
        for start, end, replacement, expected in sorted(
            edits, key=lambda e: (e[0], e[1])
        ):
            if start < cursor:
                raise SpanOutOfRangeError(
                    f"Span [{start}, {end}) overlaps a previous edit"
                )
            if expected is not None and content[start:end] != expected:
                raise SpanOutOfRangeError(
                    f"Span [{start}, {end}) contains "
                    f"{content[start:end]!r}, expected {expected!r}"
                )
            pieces.append(content[cursor:start])
            pieces.append(replacement)
            cursor = end
        pieces.append(content[cursor:])
        return b"".join(pieces)

    @staticmethod
    def _read(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise SourceIOError(f"Cannot read {path}: {e}") from e

    @staticmethod
    def _write(path: Path, content: bytes) -> None:
        """Replace *path* atomically, keeping its permissions."""
        try:
            mode = path.stat().st_mode
            fd, tmp = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
            try:
                with open(fd, "wb") as f:
                    f.write(content)
                os.chmod(tmp, mode)
                Path(tmp).replace(path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise SourceIOError(f"Cannot write {path}: {e}") from e


def byte_range(content: bytes, span: Span) -> tuple[int, int]:
    """Return the ``[start, end)`` byte range of *span* within *content*.

    Spans without byte offsets are resolved from their 1-based line and
    character columns.

    Raises:
        SpanOutOfRangeError: If the span does not fit *content*.
    """
    if span.byte_start is not None and span.byte_end is not None:
        start, end = span.byte_start, span.byte_end
    else:
        start = _line_column_offset(content, span.line_start, span.column_start)
        end = _line_column_offset(content, span.line_end, span.column_end)

    if not 0 <= start <= end <= len(content):
        raise SpanOutOfRangeError(
            f"Span [{start}, {end}) of {span.file_name} exceeds "
            f"current size of {len(content)} bytes"
        )
    return start, end


def _line_column_offset(content: bytes, line: int, column: int) -> int:
    """Convert a 1-based line and character column to a byte offset."""
    lines = content.split(b"\n")
    if line < 1 or line > len(lines) or column < 1:
        raise SpanOutOfRangeError(
            f"Line {line}, column {column} is outside the file"
        )

    try:
        text = lines[line - 1].decode("utf-8")
    except UnicodeDecodeError as e:
        raise SpanOutOfRangeError(f"Line {line} is not valid UTF-8") from e

    if column - 1 > len(text):
        raise SpanOutOfRangeError(
            f"Column {column} is past the end of line {line}"
        )

    line_offset = sum(len(previous) + 1 for previous in lines[: line - 1])
    return line_offset + len(text[: column - 1].encode("utf-8"))
