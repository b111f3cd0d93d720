# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for snafu_upgrade/report.py."""

from pathlib import Path

from snafu_upgrade.diagnostics.types import Diagnostic, Span
from snafu_upgrade.patcher import SourcePatcher
from snafu_upgrade.report import ChangeReporter, format_remaining
from snafu_upgrade.types import Fix


SOURCE = "fn main() {\n    let _ = Foo.build();\n    let _ = Bar;\n}\n"


def _fix(name: str, file_path: str = "src/main.rs") -> Fix:
    start = SOURCE.index(name)
    line = SOURCE.count("\n", 0, start) + 1
    column = start - SOURCE.rfind("\n", 0, start)
    span = Span(
        file_name=file_path,
        byte_start=start,
        byte_end=start + len(name),
        line_start=line,
        column_start=column,
        line_end=line,
        column_end=column + len(name),
    )
    return Fix(file_path, span, f"{name}Snafu", name)


class TestChangeReporter:
    """Tests for ChangeReporter."""

    def test_empty(self) -> None:
        """Nothing recorded renders a short notice."""
        reporter = ChangeReporter()
        assert len(reporter) == 0
        assert reporter.render() == "No changes needed."

    def test_render_groups_by_file(self) -> None:
        """Changes are listed per file in source order."""
        reporter = ChangeReporter()
        reporter.record(_fix("Bar"))
        reporter.record(_fix("Foo"))
        reporter.record(_fix("Foo", "src/lib.rs"))

        assert reporter.render() == (
            "Would write modified content to 'src/lib.rs'\n"
            "  src/lib.rs:2:13: Foo -> FooSnafu\n"
            "Would write modified content to 'src/main.rs'\n"
            "  src/main.rs:2:13: Foo -> FooSnafu\n"
            "  src/main.rs:3:13: Bar -> BarSnafu\n"
            "\n"
            "3 changes in 2 files"
        )

    def test_singular_totals(self) -> None:
        """Totals use singular nouns for one change."""
        reporter = ChangeReporter()
        reporter.record(_fix("Foo"))
        assert reporter.render().endswith("\n1 change in 1 file")

    def test_accessors(self) -> None:
        """Recorded fixes are exposed in recording order."""
        reporter = ChangeReporter()
        fixes = [_fix("Bar"), _fix("Foo", "src/a.rs"), _fix("Foo")]
        for fix in fixes:
            reporter.record(fix)

        assert reporter.fixes == fixes
        assert reporter.files == ["src/a.rs", "src/main.rs"]
        assert reporter.by_file() == {
            "src/main.rs": [fixes[0], fixes[2]],
            "src/a.rs": [fixes[1]],
        }

    def test_render_diff(self, tmp_path: Path) -> None:
        """The diff shows each changed line without writing files."""
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "main.rs").write_text(SOURCE)
        reporter = ChangeReporter()
        reporter.record(_fix("Foo"))

        diff = reporter.render_diff(SourcePatcher(tmp_path))

        assert "--- a/src/main.rs\n+++ b/src/main.rs\n" in diff
        assert "-    let _ = Foo.build();\n" in diff
        assert "+    let _ = FooSnafu.build();\n" in diff
        assert (tmp_path / "src" / "main.rs").read_text() == SOURCE

    def test_render_diff_empty(self, tmp_path: Path) -> None:
        """No recorded fixes give an empty diff."""
        assert ChangeReporter().render_diff(SourcePatcher(tmp_path)) == ""


class TestFormatRemaining:
    """Tests for format_remaining."""

    def test_empty(self) -> None:
        """No diagnostics render as nothing."""
        assert format_remaining([]) == ""

    def test_verbatim(self) -> None:
        """Each diagnostic is shown as the compiler rendered it."""
        span = _fix("Foo").span
        diagnostics = [
            Diagnostic(
                "src/main.rs",
                span,
                "no method named `build` found",
                code="E0599",
                rendered="error[E0599]: no method named `build` found\n",
            ),
            Diagnostic("src/main.rs", span, "mismatched types", code="E0308"),
        ]

        assert format_remaining(diagnostics) == (
            "2 diagnostics could not be fixed automatically:\n"
            "\n"
            "error[E0599]: no method named `build` found\n"
            "\n"
            "src/main.rs:2:13: error[E0308]: mismatched types"
        )
