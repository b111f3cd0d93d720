# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Exception taxonomy for the upgrade loop.

Fatal errors (``MalformedDiagnosticError``, ``SourceIOError``) abort the run.
``SpanOutOfRangeError`` and ``OutOfScopeError`` are recoverable and handled
by the driver.
"""


class UpgradeError(Exception):
    """Base exception for all upgrade failures."""


class MalformedDiagnosticError(UpgradeError):
    """Compiler output could not be parsed into diagnostics."""


class SourceIOError(UpgradeError):
    """A source file could not be read or written."""


class SpanOutOfRangeError(UpgradeError):
    """A span no longer matches the current content of its file.

    Signals that the diagnostics are stale and must be re-extracted.
    """


class OutOfScopeError(UpgradeError):
    """A fix targets a file outside the directory being upgraded."""


class CompilerError(UpgradeError):
    """The compiler ran but produced unusable results."""


class CompilerUnavailableError(CompilerError):
    """The compiler executable could not be started."""
