# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across multiple test packages."""

import json
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from snafu_upgrade.compiler import CompilerRun


# Source of the 0.6-style example crate
OLD_MAIN_RS = """\
use snafu::Snafu;

#[derive(Debug, Snafu)]
enum EnumError {
    EnumVariant1,
    EnumVariant2 { name: String },
}

#[derive(Debug, Snafu)]
struct StructError;

fn main() {
    let _ = EnumVariant1.build();
    let _ = EnumVariant2 { name: "name" }.build();
    let _ = StructContext.build();
}
"""

# Expected source after the upgrade
NEW_MAIN_RS = """\
use snafu::Snafu;

#[derive(Debug, Snafu)]
enum EnumError {
    EnumVariant1,
    EnumVariant2 { name: String },
}

#[derive(Debug, Snafu)]
struct StructError;

fn main() {
    let _ = EnumVariant1Snafu.build();
    let _ = EnumVariant2Snafu { name: "name" }.build();
    let _ = StructSnafu.build();
}
"""

# Selector uses: ``let _ = Name`` where Name may be a path
_USE_SITE = re.compile(rb"let _ = (?P<name>[A-Za-z_][A-Za-z0-9_:]*)")


def make_span(
    content: bytes,
    start: int,
    end: int,
    file_name: str = "src/main.rs",
    is_primary: bool = True,
    expansion: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a cargo JSON span for ``content[start:end]``."""
    line_offset = content.rfind(b"\n", 0, start) + 1
    line_end_offset = content.find(b"\n", start)
    if line_end_offset == -1:
        line_end_offset = len(content)
    line_text = content[line_offset:line_end_offset].decode()
    line_no = content.count(b"\n", 0, start) + 1
    column = len(content[line_offset:start].decode()) + 1
    width = len(content[start:end].decode())
    return {
        "byte_start": start,
        "byte_end": end,
        "column_start": column,
        "column_end": column + width,
        "expansion": expansion,
        "file_name": file_name,
        "is_primary": is_primary,
        "label": "not found in this scope",
        "line_start": line_no,
        "line_end": line_no,
        "suggested_replacement": None,
        "suggestion_applicability": None,
        "text": [
            {
                "highlight_start": column,
                "highlight_end": column + width,
                "text": line_text,
            }
        ],
    }


def make_compiler_message(
    message: str,
    spans: list[dict[str, Any]],
    code: str | None = "E0425",
    level: str = "error",
) -> dict[str, Any]:
    """Build a cargo ``compiler-message`` line."""
    location = ""
    primary = [s for s in spans if s["is_primary"]]
    if primary:
        span = primary[0]
        location = (
            f"\n --> {span['file_name']}:{span['line_start']}:"
            f"{span['column_start']}\n"
        )
    header = f"{level}[{code}]" if code else level
    return {
        "reason": "compiler-message",
        "package_id": "example 0.1.0 (path+file:///tmp/example)",
        "manifest_path": "/tmp/example/Cargo.toml",
        "target": {"kind": ["bin"], "name": "example"},
        "message": {
            "$message_type": "diagnostic",
            "children": [],
            "code": {"code": code, "explanation": None} if code else None,
            "level": level,
            "message": message,
            "rendered": f"{header}: {message}{location}",
            "spans": spans,
        },
    }


def to_json_lines(objects: list[dict[str, Any]]) -> str:
    """Serialize objects as cargo's newline-delimited JSON."""
    return "".join(json.dumps(obj) + "\n" for obj in objects)


class FakeCargo:
    """Stands in for ``cargo check`` over a temporary crate.

    Every ``let _ = Name`` whose last path segment does not end with
    ``suffix`` is reported as an unresolved name (E0425). Additional fixed
    messages can be supplied to simulate unrelated errors.

    Attributes:
        root: Crate root; file names are reported relative to it.
        calls: Number of check builds performed.
    """

    def __init__(
        self,
        root: Path,
        suffix: str = "Snafu",
        extra_messages: list[dict[str, Any]] | None = None,
    ) -> None:
        self.root = root
        self.suffix = suffix
        self.extra_messages = extra_messages or []
        self.calls = 0

    def diagnostics_for(self, path: Path) -> list[dict[str, Any]]:
        """Compute compiler messages for one source file."""
        content = path.read_bytes()
        file_name = path.relative_to(self.root).as_posix()
        messages = []
        for match in _USE_SITE.finditer(content):
            name = match.group("name").decode()
            if name.rpartition("::")[2].endswith(self.suffix):
                continue
            span = make_span(
                content, match.start("name"), match.end("name"), file_name
            )
            messages.append(
                make_compiler_message(
                    f"cannot find value `{name}` in this scope", [span]
                )
            )
        return messages

    def check(self) -> CompilerRun:
        self.calls += 1
        messages: list[dict[str, Any]] = [
            {
                "reason": "compiler-artifact",
                "package_id": "snafu 0.7.0",
                "target": {"kind": ["lib"], "name": "snafu"},
                "fresh": True,
            }
        ]
        for path in sorted(self.root.rglob("*.rs")):
            messages.extend(self.diagnostics_for(path))
        messages.extend(self.extra_messages)

        errors = sum(
            1
            for m in messages
            if m["reason"] == "compiler-message"
            and m["message"]["level"] == "error"
        )
        if errors:
            messages.append(
                make_compiler_message(
                    f"aborting due to {errors} previous errors", [], code=None
                )
            )
        messages.append({"reason": "build-finished", "success": errors == 0})
        return CompilerRun(
            success=errors == 0,
            output=to_json_lines(messages),
            returncode=0 if errors == 0 else 101,
        )


@pytest.fixture
def rust_project(tmp_path: Path) -> Path:
    """Create a crate using 0.6-style context selectors.

    Returns:
        Path to the crate root.
    """
    root = tmp_path / "example"
    (root / "src").mkdir(parents=True)
    (root / "Cargo.toml").write_text(
        '[package]\nname = "example"\nversion = "0.1.0"\n\n'
        '[dependencies]\nsnafu = "0.7.0"\n'
    )
    (root / "src" / "main.rs").write_text(OLD_MAIN_RS)
    return root


@pytest.fixture
def fake_cargo(rust_project: Path) -> FakeCargo:
    """A fake compiler for ``rust_project``."""
    return FakeCargo(rust_project)


@pytest.fixture
def span_for() -> Callable[..., dict[str, Any]]:
    """Expose ``make_span`` to tests."""
    return make_span


@pytest.fixture
def compiler_message() -> Callable[..., dict[str, Any]]:
    """Expose ``make_compiler_message`` to tests."""
    return make_compiler_message


@pytest.fixture
def json_lines() -> Callable[[list[dict[str, Any]]], str]:
    """Expose ``to_json_lines`` to tests."""
    return to_json_lines


@pytest.fixture
def fake_cargo_factory() -> Callable[..., FakeCargo]:
    """Build fake compilers for custom crates."""
    return FakeCargo
