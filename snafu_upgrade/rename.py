# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Context selector rename rule.

SNAFU 0.7 generates context selectors with a ``Snafu`` suffix where 0.6
used the bare variant name, a ``Context`` suffix, or the struct name. Code
written for 0.6 therefore fails to resolve those names; this module turns
such diagnostics into fixes that rename the selector.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from snafu_upgrade.diagnostics.types import Diagnostic
from snafu_upgrade.types import Fix, FixKey


logger = logging.getLogger(__name__)

DEFAULT_SUFFIX = "Snafu"

# rustc codes for names that failed to resolve
RELEVANT_CODES = frozenset(
    {"E0412", "E0422", "E0423", "E0425", "E0432", "E0574"}
)

# Old-style selector suffixes, stripped in this order
_OLD_SUFFIXES = ("Error", "Context")

# Context selectors are UpperCamelCase type names
_SELECTOR_NAME = re.compile(r"^[A-Z][A-Za-z0-9]*$")


def rename_selector(name: str, suffix: str = DEFAULT_SUFFIX) -> str | None:
    """Map an old-style selector name to the new convention.

    Args:
        name: Selector name as written in the source.
        suffix: Suffix used by the new convention.

    Returns:
        The renamed selector, or ``None`` if *name* already carries the
        suffix or nothing would remain of it.
    """
    if name.endswith(suffix):
        return None

    base = name
    for old in _OLD_SUFFIXES:
        base = base.removesuffix(old)

    if not base:
        return None
    return base + suffix


def propose_fix(
    diagnostic: Diagnostic, suffix: str = DEFAULT_SUFFIX
) -> Fix | None:
    """Turn an unresolved-name diagnostic into a rename fix.

    Diagnostics from unrelated causes, names that cannot be a selector
    (anything not UpperCamelCase, such as a missing function), and those
    whose location cannot be trusted (multi-line spans, macro expansions,
    synthetic files) yield ``None``.

    Args:
        diagnostic: Diagnostic to inspect.
        suffix: Suffix used by the new convention.

    Returns:
        Fix replacing the offending name, or ``None``.
    """
    if diagnostic.code not in RELEVANT_CODES:
        return None

    span = diagnostic.primary_span
    if span.is_multiline or span.from_expansion:
        logger.debug("Ignoring unresolvable span at %s", span.location())
        return None
    if diagnostic.file_path.startswith("<"):
        return None

    identifier = diagnostic.offending_identifier
    if not identifier:
        return None

    # Paths such as ``crate::error::FooContext`` rename the last segment
    prefix, separator, name = identifier.rpartition("::")
    if not _SELECTOR_NAME.match(name):
        logger.debug("Not a context selector name: %r", name)
        return None

    renamed = rename_selector(name, suffix)
    if renamed is None:
        return None

    return Fix(
        file_path=diagnostic.file_path,
        span=span,
        replacement_text=prefix + separator + renamed,
        original_text=identifier,
    )


def propose_fixes(
    diagnostics: Iterable[Diagnostic], suffix: str = DEFAULT_SUFFIX
) -> list[Fix]:
    """Propose fixes for a batch of diagnostics from one compiler run.

    Fixes are deduplicated by file and span; the first occurrence wins.

    Args:
        diagnostics: Diagnostics from a single compiler invocation.
        suffix: Suffix used by the new convention.

    Returns:
        Fixes in order of first appearance.
    """
    fixes: list[Fix] = []
    seen: set[FixKey] = set()
    for diagnostic in diagnostics:
        fix = propose_fix(diagnostic, suffix)
        if fix is None or fix.key in seen:
            continue
        seen.add(fix.key)
        fixes.append(fix)
    return fixes
