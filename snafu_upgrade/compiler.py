# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Cargo invocation.

Wraps ``cargo check`` and ``cargo metadata``. The check build is run with
``--message-format json`` so diagnostics arrive structured; when cargo
produces no JSON (e.g. a wrapper script that only forwards stderr), the
human-readable output is returned instead for the text parser.

There is no timeout: a check build of a large workspace can take as long as
it takes, and interruption is left to the caller.
"""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from snafu_upgrade.diagnostics import build_succeeded
from snafu_upgrade.errors import CompilerError, CompilerUnavailableError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompilerRun:
    """Result of one check build.

    Attributes:
        success: Whether the build succeeded.
        output: Diagnostic output (JSON stream or human-readable text).
        returncode: Process exit status.
    """

    success: bool
    output: str
    returncode: int = 0


class Compiler(Protocol):
    """Interface the driver needs from a compiler."""

    def check(self) -> CompilerRun:
        """Run a check build and capture its diagnostics."""
        ...


class CargoCompiler:
    """Runs ``cargo check`` against a project directory.

    Attributes:
        project_dir: Directory cargo is run in.
        extra_args: Arguments forwarded verbatim to ``cargo check``.
        cargo: Cargo executable.
    """

    def __init__(
        self,
        project_dir: Path,
        extra_args: Sequence[str] = (),
        cargo: str = "cargo",
    ) -> None:
        self.project_dir = project_dir
        self.extra_args = tuple(extra_args)
        self.cargo = cargo

    def check_command(self) -> list[str]:
        """Build the ``cargo check`` argument list."""
        return [
            self.cargo,
            "check",
            *self.extra_args,
            "--message-format",
            "json",
        ]

    def check(self) -> CompilerRun:
        """Run ``cargo check`` and capture its diagnostics.

        Returns:
            CompilerRun with the structured output when available.

        Raises:
            CompilerUnavailableError: If cargo cannot be started.
        """
        command = self.check_command()
        logger.debug("Running %s in %s", command, self.project_dir)
        result = self._run(command)

        stdout = result.stdout or ""
        stderr = result.stderr or ""
        if stdout.strip():
            output = stdout
        else:
            logger.debug("No JSON output from cargo; using stderr")
            output = stderr

        finished = build_succeeded(stdout)
        success = finished if finished is not None else result.returncode == 0

        logger.debug(
            "cargo check exited with %d (success=%s, %d bytes of output)",
            result.returncode,
            success,
            len(output),
        )
        return CompilerRun(
            success=success,
            output=output,
            returncode=result.returncode,
        )

    def workspace_root(self) -> Path:
        """Ask cargo for the workspace root of ``project_dir``.

        Returns:
            Absolute path of the workspace root.

        Raises:
            CompilerUnavailableError: If cargo cannot be started.
            CompilerError: If cargo fails or its output is unusable.
        """
        result = self._run(
            [self.cargo, "metadata", "--format-version", "1", "--no-deps"]
        )
        if result.returncode != 0:
            error_msg = result.stderr.strip() if result.stderr else ""
            raise CompilerError(f"cargo metadata failed: {error_msg}")

        try:
            metadata = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise CompilerError(
                f"cargo metadata produced invalid JSON: {e}"
            ) from e

        root = metadata.get("workspace_root")
        if not isinstance(root, str) or not root:
            raise CompilerError("cargo metadata did not report workspace_root")
        return Path(root)

    def _run(self, command: list[str]) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(
                command,
                cwd=self.project_dir,
                capture_output=True,
                text=True,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise CompilerUnavailableError(
                f"Cannot run {self.cargo!r}: {e}"
            ) from e
