# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Parse compiler output into typed diagnostics.

Two grammars are understood:

- cargo's ``--message-format json`` stream, one JSON object per line,
- rustc's human-readable output (``error[E0425]: ...`` followed by a
  ``--> file:line:col`` location), used when no JSON was produced.

Messages that do not concern a source location are skipped. Output whose
structure cannot be recovered raises ``MalformedDiagnosticError``.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator
from typing import Any

from snafu_upgrade.diagnostics.types import Diagnostic, DiagnosticLevel, Span
from snafu_upgrade.errors import MalformedDiagnosticError


logger = logging.getLogger(__name__)

_QUOTED_NAME = re.compile(r"`([^`]+)`")

_TEXT_HEADER = re.compile(
    r"^(?P<level>error|warning)(?:\[(?P<code>E\d{4})\])?: (?P<message>.*)$"
)
_TEXT_ARROW = re.compile(r"^\s*-->\s*")
_TEXT_LOCATION = re.compile(
    r"^\s*-->\s*(?P<path>.+?):(?P<line>\d+):(?P<column>\d+)\s*$"
)

_SPAN_INT_KEYS = ("line_start", "line_end", "column_start", "column_end")


def extract(compiler_output: str) -> Iterator[Diagnostic]:
    """Lazily extract diagnostics from raw compiler output.

    The format is chosen from the first non-blank line: JSON when it
    starts with ``{``, human-readable text otherwise.

    Args:
        compiler_output: Raw output of ``cargo check``.

    Yields:
        One diagnostic per primary span, in order of appearance.

    Raises:
        MalformedDiagnosticError: If the output's structure cannot be
            recovered.
    """
    for line in compiler_output.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith("{"):
            yield from extract_json(compiler_output)
        else:
            yield from extract_text(compiler_output)
        return


def extract_json(compiler_output: str) -> Iterator[Diagnostic]:
    """Extract diagnostics from cargo's JSON message stream.

    Args:
        compiler_output: Newline-delimited JSON from
            ``cargo check --message-format json``.

    Yields:
        Diagnostics for each primary span of each compiler message.

    Raises:
        MalformedDiagnosticError: If a line is not a JSON object with a
            ``reason``, or a compiler message lacks its structured fields.
    """
    for lineno, line in enumerate(compiler_output.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue

        try:
            raw_obj = json.loads(line)
        except json.JSONDecodeError as e:
            raise MalformedDiagnosticError(
                f"Line {lineno} of compiler output is not JSON: {line[:100]}"
            ) from e

        if not isinstance(raw_obj, dict):
            raise MalformedDiagnosticError(
                f"Line {lineno} of compiler output is not a JSON object"
            )

        reason = raw_obj.get("reason")
        if not isinstance(reason, str):
            raise MalformedDiagnosticError(
                f"Line {lineno} of compiler output has no 'reason'"
            )

        if reason != "compiler-message":
            logger.debug("Skipping %s message", reason)
            continue

        message = raw_obj.get("message")
        if not isinstance(message, dict):
            raise MalformedDiagnosticError(
                f"Compiler message on line {lineno} has no 'message' object"
            )

        yield from _parse_message(message, lineno)


def build_succeeded(compiler_output: str) -> bool | None:
    """Return the ``build-finished`` success flag, if cargo reported one.

    Non-JSON lines are ignored here; :func:`extract` is responsible for
    rejecting them.

    Args:
        compiler_output: Raw output of ``cargo check``.

    Returns:
        The reported flag, or ``None`` when no ``build-finished`` line
        is present.
    """
    result: bool | None = None
    for line in compiler_output.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            raw_obj = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(raw_obj, dict) and raw_obj.get("reason") == (
            "build-finished"
        ):
            result = bool(raw_obj.get("success", False))
    return result


def _parse_message(
    message: dict[str, Any], lineno: int
) -> Iterator[Diagnostic]:
    """Convert one rustc diagnostic object into per-span diagnostics."""
    text = message.get("message")
    if not isinstance(text, str):
        raise MalformedDiagnosticError(
            f"Compiler message on line {lineno} has no message text"
        )

    spans = message.get("spans")
    if not isinstance(spans, list):
        raise MalformedDiagnosticError(
            f"Compiler message on line {lineno} has no 'spans' list"
        )

    code_obj = message.get("code")
    code = None
    if isinstance(code_obj, dict) and isinstance(code_obj.get("code"), str):
        code = code_obj["code"]

    level_str = message.get("level", "")
    try:
        level = DiagnosticLevel(level_str)
    except ValueError:
        logger.debug("Unknown diagnostic level: %s", level_str)
        level = DiagnosticLevel.UNKNOWN

    rendered = message.get("rendered")
    if not isinstance(rendered, str):
        rendered = ""

    for raw_span in spans:
        if not isinstance(raw_span, dict):
            raise MalformedDiagnosticError(
                f"Compiler message on line {lineno} has a non-object span"
            )
        if not raw_span.get("is_primary", False):
            continue

        span = _parse_span(raw_span, lineno)
        yield Diagnostic(
            file_path=span.file_name,
            primary_span=span,
            message_text=text,
            offending_identifier=_identifier(span, text),
            code=code,
            level=level,
            rendered=rendered,
        )


def _parse_span(raw_span: dict[str, Any], lineno: int) -> Span:
    """Convert a JSON span object into a ``Span``."""
    file_name = raw_span.get("file_name")
    if not isinstance(file_name, str) or not file_name:
        raise MalformedDiagnosticError(
            f"Span on line {lineno} has no file name"
        )

    positions: dict[str, int] = {}
    for key in _SPAN_INT_KEYS:
        value = raw_span.get(key)
        # bool is an int subclass; reject it explicitly
        if not isinstance(value, int) or isinstance(value, bool):
            raise MalformedDiagnosticError(
                f"Span on line {lineno} has no integer '{key}'"
            )
        positions[key] = value

    byte_start = raw_span.get("byte_start")
    byte_end = raw_span.get("byte_end")
    if not isinstance(byte_start, int) or not isinstance(byte_end, int):
        raise MalformedDiagnosticError(
            f"Span on line {lineno} has no byte offsets"
        )

    return Span(
        file_name=file_name,
        byte_start=byte_start,
        byte_end=byte_end,
        line_start=positions["line_start"],
        column_start=positions["column_start"],
        line_end=positions["line_end"],
        column_end=positions["column_end"],
        is_primary=True,
        text=_highlighted_text(raw_span.get("text")),
        from_expansion=raw_span.get("expansion") is not None,
    )


def _highlighted_text(raw_text: object) -> str | None:
    """Join the highlighted portions of a span's source lines."""
    if not isinstance(raw_text, list) or not raw_text:
        return None

    parts: list[str] = []
    for entry in raw_text:
        if not isinstance(entry, dict):
            return None
        source = entry.get("text")
        start = entry.get("highlight_start")
        end = entry.get("highlight_end")
        if (
            not isinstance(source, str)
            or not isinstance(start, int)
            or not isinstance(end, int)
        ):
            return None
        parts.append(source[start - 1 : end - 1])
    return "\n".join(parts)


def _identifier(span: Span, message: str) -> str | None:
    """Recover the name a diagnostic is about.

    Single-line spans with highlighted text are authoritative. Otherwise
    fall back to the first backtick-quoted name in the message.
    """
    if span.text and not span.is_multiline:
        return span.text
    match = _QUOTED_NAME.search(message)
    if match:
        return match.group(1)
    return None


# ---------------------------------------------------------------------------
# Human-readable output
# ---------------------------------------------------------------------------


def extract_text(compiler_output: str) -> Iterator[Diagnostic]:
    """Extract diagnostics from rustc's human-readable output.

    Only the primary location (``-->`` line) of each error or warning is
    recovered. Byte offsets are left unset; the span width is the length
    of the backtick-quoted name in the message.

    Args:
        compiler_output: Human-readable output of ``cargo check``.

    Yields:
        One diagnostic per located error or warning.

    Raises:
        MalformedDiagnosticError: If a ``-->`` line does not have the
            ``path:line:column`` form.
    """
    lines = compiler_output.splitlines()
    index = 0
    while index < len(lines):
        header = _TEXT_HEADER.match(lines[index])
        if header is None:
            index += 1
            continue

        block = [lines[index]]
        index += 1
        while index < len(lines) and not _TEXT_HEADER.match(lines[index]):
            block.append(lines[index])
            index += 1

        diagnostic = _parse_text_block(header, block)
        if diagnostic is not None:
            yield diagnostic


def _parse_text_block(
    header: re.Match[str], block: list[str]
) -> Diagnostic | None:
    """Build a diagnostic from one header and its following lines."""
    location = None
    for line in block[1:]:
        if not _TEXT_ARROW.match(line):
            continue
        location = _TEXT_LOCATION.match(line)
        if location is None:
            raise MalformedDiagnosticError(
                f"Cannot parse diagnostic location: {line.strip()}"
            )
        break

    if location is None:
        logger.debug("Skipping unlocated diagnostic: %s", block[0])
        return None

    message = header.group("message")
    quoted = _QUOTED_NAME.search(message)
    identifier = quoted.group(1) if quoted else None

    line_no = int(location.group("line"))
    column = int(location.group("column"))
    width = len(identifier) if identifier else 0
    span = Span(
        file_name=location.group("path"),
        byte_start=None,
        byte_end=None,
        line_start=line_no,
        column_start=column,
        line_end=line_no,
        column_end=column + width,
        is_primary=True,
        text=identifier,
    )

    return Diagnostic(
        file_path=span.file_name,
        primary_span=span,
        message_text=message,
        offending_identifier=identifier,
        code=header.group("code"),
        level=DiagnosticLevel(header.group("level")),
        rendered="\n".join(block).rstrip() + "\n",
    )
