# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Typed representations for compiler diagnostics.

``cargo check --message-format json`` produces newline-delimited JSON where
each ``compiler-message`` line carries one rustc diagnostic with a list of
spans. This module provides frozen dataclasses for the pieces the upgrade
loop consumes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DiagnosticLevel(Enum):
    """Severity reported by the compiler.

    The ``UNKNOWN`` member covers levels not recognized by the parser
    (rustc occasionally adds new ones such as ``failure-note``).
    """

    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"
    HELP = "help"
    ICE = "error: internal compiler error"
    UNKNOWN = "_unknown"


@dataclass(frozen=True)
class Span:
    """A source range reported by the compiler.

    Lines and columns are 1-based; columns count characters, not bytes.
    Byte offsets are ``None`` when the span was recovered from
    human-readable output, in which case the patcher resolves them from
    the line and column against the current file content.

    Attributes:
        file_name: Path as reported by the compiler, usually relative to
            the workspace root.
        byte_start: Offset of the first byte, inclusive.
        byte_end: Offset one past the last byte.
        line_start: First line of the span.
        column_start: First column on ``line_start``.
        line_end: Last line of the span.
        column_end: Column one past the end on ``line_end``.
        is_primary: Whether the compiler marked this as the primary span.
        text: Highlighted source text, when the compiler supplied it.
        from_expansion: The compiler attributed this span to a macro
            expansion.
    """

    file_name: str
    byte_start: int | None
    byte_end: int | None
    line_start: int
    column_start: int
    line_end: int
    column_end: int
    is_primary: bool = True
    text: str | None = None
    from_expansion: bool = False

    @property
    def is_multiline(self) -> bool:
        """Whether the span crosses a line boundary."""
        return self.line_end != self.line_start

    @property
    def has_offsets(self) -> bool:
        """Whether byte offsets are known."""
        return self.byte_start is not None and self.byte_end is not None

    def location(self) -> str:
        """Format as ``file:line:column``."""
        return f"{self.file_name}:{self.line_start}:{self.column_start}"


@dataclass(frozen=True)
class Diagnostic:
    """A single compiler diagnostic anchored at one primary span.

    Messages with several primary spans yield one ``Diagnostic`` each.

    Attributes:
        file_path: File the primary span points into.
        primary_span: The span the compiler marked as primary.
        message_text: The diagnostic's headline message.
        offending_identifier: Name the diagnostic is about, if recoverable.
        code: rustc error code (e.g. ``E0425``), if any.
        level: Severity.
        rendered: The compiler's own human-readable rendering.
    """

    file_path: str
    primary_span: Span
    message_text: str
    offending_identifier: str | None = None
    code: str | None = None
    level: DiagnosticLevel = DiagnosticLevel.ERROR
    rendered: str = ""

    @property
    def is_error(self) -> bool:
        """Whether this diagnostic fails the build."""
        return self.level in (DiagnosticLevel.ERROR, DiagnosticLevel.ICE)

    def describe(self) -> str:
        """Return the compiler's rendering, or a one-line fallback."""
        if self.rendered:
            return self.rendered.rstrip("\n")
        prefix = self.level.value
        if self.code:
            prefix += f"[{self.code}]"
        return f"{self.primary_span.location()}: {prefix}: {self.message_text}"
