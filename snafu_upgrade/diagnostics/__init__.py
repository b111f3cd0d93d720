# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Compiler diagnostic parsing library.

Parses ``cargo check`` output (JSON message stream, or rustc's
human-readable rendering as a fallback) into typed diagnostics.
"""

from snafu_upgrade.diagnostics.parser import (
    build_succeeded,
    extract,
    extract_json,
    extract_text,
)
from snafu_upgrade.diagnostics.types import (
    Diagnostic,
    DiagnosticLevel,
    Span,
)


__all__ = [
    # Types
    "Diagnostic",
    "DiagnosticLevel",
    "Span",
    # Parser
    "build_succeeded",
    "extract",
    "extract_json",
    "extract_text",
]
